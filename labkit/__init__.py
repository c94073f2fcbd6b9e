"""
labkit - MLOps lab environment automation.

Provisions a local ML development environment and the Azure resources an
MLOps lab needs by driving the vendor command-line tools through declarative
workflows.
"""

__version__ = "0.1.0"
