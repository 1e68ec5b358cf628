"""Deployment safety guard utilities.

This module provides strict checks to prevent accidental AWS operations.

To allow real deployments or publishes you must set BOTH environment variables:
- ALLOW_AWS_DEPLOY=1
- DEPLOY_CONFIRM=I_ACCEPT_CHANGES

Tearing a stack down additionally requires DESTROY_CONFIRM to equal the name
of the stack being destroyed.
"""
import os
import sys

CONFIRM_TOKEN = "I_ACCEPT_CHANGES"


def _env_flag_true(val: str | None) -> bool:
    return (val or "").lower() in ("1", "true", "yes")


def is_deploy_allowed() -> bool:
    """Return True only if both confirmations are present.

    - ALLOW_AWS_DEPLOY must be set to a truthy value (1/true/yes)
    - DEPLOY_CONFIRM must exactly equal the acknowledgement string
    """
    allow = _env_flag_true(os.getenv("ALLOW_AWS_DEPLOY"))
    confirm = os.getenv("DEPLOY_CONFIRM", "") == CONFIRM_TOKEN
    return allow and confirm


def is_destroy_allowed(stack_name: str) -> bool:
    """Return True if deploys are allowed and DESTROY_CONFIRM names the stack."""
    return is_deploy_allowed() and os.getenv("DESTROY_CONFIRM", "") == stack_name


def require_deploy_allowed_or_exit(message: str | None = None, destroy_stack: str | None = None) -> None:
    """Exit the process if deployment confirmations are not present.

    This should be called by any script that could change live resources
    (CDK deploy/destroy, bucket sync, invalidations) when the operation is
    requested with --apply.
    """
    if destroy_stack is None and is_deploy_allowed():
        return
    if destroy_stack is not None and is_destroy_allowed(destroy_stack):
        return

    sys.stderr.write("ERROR: Real AWS deployments are disabled by default.\n")
    sys.stderr.write("To enable deployments, set BOTH environment variables:\n")
    sys.stderr.write("  ALLOW_AWS_DEPLOY=1\n")
    sys.stderr.write(f"  DEPLOY_CONFIRM={CONFIRM_TOKEN}\n")
    if destroy_stack is not None:
        sys.stderr.write(f"Destroying also requires DESTROY_CONFIRM={destroy_stack}\n")
    if message:
        sys.stderr.write(f"{message}\n")
    sys.exit(2)
