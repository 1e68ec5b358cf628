"""Deployment support for the BAPS AI static frontend.

This package holds the pieces shared by the CDK stacks and the operator
scripts:
- Configuration loading and validation
- Build output staging
- Stack output resolution
- Bucket publishing and CloudFront invalidation
- Policy checks over synthesized templates
"""

__version__ = "0.1.0"
