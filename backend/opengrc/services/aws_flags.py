"""Security flags derived from collector-populated AWS rows."""
from typing import Any

from opengrc.models.aws import (
    AwsCloudTrailEvent,
    AwsConfigRule,
    AwsEc2Instance,
    AwsIamPolicy,
    AwsIamRole,
    AwsIamUser,
    AwsRdsInstance,
    AwsS3Bucket,
)


def _active_keys(access_keys: list[Any] | None) -> int:
    count = 0
    for key in access_keys or []:
        if isinstance(key, dict):
            if str(key.get("status", "Active")).lower() == "active":
                count += 1
        else:
            count += 1
    return count


def risk_flags(row: Any) -> list[str]:
    flags: list[str] = []
    if isinstance(row, AwsS3Bucket):
        if row.is_public:
            flags.append("public")
        if not row.encryption_enabled:
            flags.append("unencrypted")
        if not row.versioning_enabled:
            flags.append("no_versioning")
        if not row.logging_enabled:
            flags.append("no_logging")
    elif isinstance(row, AwsEc2Instance):
        if row.public_ip or row.is_public:
            flags.append("public_ip")
    elif isinstance(row, AwsRdsInstance):
        if row.publicly_accessible:
            flags.append("publicly_accessible")
        if not row.storage_encrypted:
            flags.append("unencrypted")
        if not row.deletion_protection:
            flags.append("no_deletion_protection")
    elif isinstance(row, AwsIamUser):
        if not row.mfa_enabled:
            flags.append("no_mfa")
        if _active_keys(row.access_keys):
            flags.append("active_access_keys")
    elif isinstance(row, AwsIamPolicy):
        if row.allows_admin_access:
            flags.append("admin_access")
        if row.uses_wildcard_resources:
            flags.append("wildcard_resources")
    elif isinstance(row, AwsIamRole):
        if row.allows_cross_account:
            flags.append("cross_account")
    elif isinstance(row, AwsConfigRule):
        if row.compliance_type == "NON_COMPLIANT":
            flags.append("non_compliant")
    elif isinstance(row, AwsCloudTrailEvent):
        if row.is_root_action:
            flags.append("root_action")
        if row.is_sensitive_action:
            flags.append("sensitive_action")
    return flags


def has_access_keys(user: AwsIamUser) -> bool:
    return _active_keys(user.access_keys) > 0
