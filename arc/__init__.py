"""arc: release orchestration for the s3gw repositories."""

__version__ = "0.3.0"
