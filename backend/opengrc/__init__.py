"""OpenGRC: governance, risk and compliance service and API client."""
