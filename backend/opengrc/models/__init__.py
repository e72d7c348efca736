from .base import Base
from .audit import AuditLog
from .vendor import Vendor, VendorAssessment
from .framework import Framework, FrameworkRequirement
from .control import Control, ControlRequirementMapping
from .asset import Asset, AssetControl
from .risk import Risk, RiskControl
from .policy import Policy, PolicyVersion, PolicyAcknowledgment
from .task import Task, TaskComment
from .evidence import Evidence, EvidenceControl
from .compliance_audit import Audit, AuditRequest, AuditFinding
from .integration import Integration
from .aws import (
    AwsS3Bucket,
    AwsEc2Instance,
    AwsRdsInstance,
    AwsIamUser,
    AwsIamRole,
    AwsIamPolicy,
    AwsSecurityFinding,
    AwsConfigRule,
    AwsCloudTrailEvent,
)

__all__ = [
    "Base",
    "AuditLog",
    "Vendor", "VendorAssessment",
    "Framework", "FrameworkRequirement",
    "Control", "ControlRequirementMapping",
    "Asset", "AssetControl",
    "Risk", "RiskControl",
    "Policy", "PolicyVersion", "PolicyAcknowledgment",
    "Task", "TaskComment",
    "Evidence", "EvidenceControl",
    "Audit", "AuditRequest", "AuditFinding",
    "Integration",
    "AwsS3Bucket", "AwsEc2Instance", "AwsRdsInstance",
    "AwsIamUser", "AwsIamRole", "AwsIamPolicy",
    "AwsSecurityFinding", "AwsConfigRule", "AwsCloudTrailEvent",
]
