"""Export and re-import of Microsoft 365 security groups for GCC High tenant migrations."""

__version__ = "1.0.0"
