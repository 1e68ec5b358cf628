"""Provision, inspect or tear down the frontend stacks.

This script wraps the CDK CLI (synth, deploy, diff, destroy) for the pipeline
stack and the infrastructure stack it deploys. It defaults to dry-run mode and
requires an explicit --apply flag to touch live resources.

Before a deploy the infrastructure stack is synthesized in-process and run
through the template policy checks.
"""

import argparse
import os
import subprocess
import sys
from pathlib import Path
from typing import Any, Dict, List

# Add src and the repository root to path for config and stack access
ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(ROOT / "src"))
sys.path.insert(0, str(ROOT))

from frontend_site.config import Config, load_config
from frontend_site.template_checks import run_all_checks
from deployer_guard import require_deploy_allowed_or_exit

CDK_APP = "python3 infra/app.py"
ACTIONS = ("synth", "deploy", "diff", "destroy")
TARGETS = ("pipeline", "infrastructure", "all")


def run_command(cmd: list, dry_run: bool = True, check: bool = True, env: Dict[str, str] | None = None) -> subprocess.CompletedProcess:
    """Run a command with optional dry-run mode.

    Args:
        cmd: Command to run as list of strings
        dry_run: If True, just print the command
        check: If True, raise exception on non-zero exit
        env: Environment for the child process

    Returns:
        CompletedProcess result
    """
    if dry_run:
        print(f"DRY RUN: {' '.join(cmd)}")
        return subprocess.CompletedProcess(cmd, 0)

    print(f"Running: {' '.join(cmd)}")
    return subprocess.run(cmd, check=check, capture_output=True, text=True, env=env)


def stack_selectors(config: Config) -> Dict[str, str]:
    """CDK CLI selectors for each target; the infrastructure stack lives inside the pipeline's deploy stage."""
    return {
        "pipeline": config.stacks.pipeline,
        "infrastructure": f"{config.stacks.pipeline}/Deploy/Infrastructure",
    }


def stack_names(config: Config) -> Dict[str, str]:
    """CloudFormation stack names for each target."""
    return {
        "pipeline": config.stacks.pipeline,
        "infrastructure": config.stacks.infrastructure,
    }


def ordered_targets(action: str, target: str) -> List[str]:
    """Targets in execution order. Teardown runs in reverse creation order."""
    if target != "all":
        return [target]
    if action == "destroy":
        return ["infrastructure", "pipeline"]
    return ["pipeline", "infrastructure"]


def cdk_command(action: str, selector: str) -> List[str]:
    """Build the CDK CLI invocation for an action on one stack."""
    if action not in ACTIONS:
        raise ValueError(f"Unknown action: {action}")

    cmd = ["cdk", action, "--app", CDK_APP]
    if action == "synth":
        cmd += ["--strict", "--quiet"]
    elif action == "deploy":
        cmd += ["--require-approval", "never"]
    elif action == "destroy":
        cmd += ["--force"]
    cmd.append(selector)
    return cmd


def run_cdk(action: str, selector: str, environment: str, dry_run: bool = True) -> None:
    """Run one CDK action, exiting with status 1 if the CLI fails."""
    print(f"\n📋 cdk {action} {selector} ({environment})...")

    env = os.environ.copy()
    env["ENVIRONMENT"] = environment

    result = run_command(cdk_command(action, selector), dry_run=dry_run, check=False, env=env)

    if dry_run:
        return

    if result.stdout:
        print(result.stdout)
    if result.returncode != 0:
        print(f"❌ cdk {action} failed: {result.stderr}")
        sys.exit(1)

    print(f"✅ cdk {action} complete")


def validate_prerequisites(config: Config) -> None:
    """Validate that the CLIs exist and the credentials target the configured account.

    Raises:
        RuntimeError: If prerequisites are not met
    """
    print("🔍 Validating deployment prerequisites...")

    for tool in (["aws", "--version"], ["cdk", "--version"]):
        try:
            result = subprocess.run(tool, capture_output=True, text=True)
        except FileNotFoundError:
            raise RuntimeError(f"{tool[0]} CLI not installed")
        if result.returncode != 0:
            raise RuntimeError(f"{tool[0]} CLI not found")
        print(f"  ✅ {tool[0]} CLI available")

    result = subprocess.run(
        ["aws", "sts", "get-caller-identity", "--query", "Account", "--output", "text"],
        capture_output=True,
        text=True,
    )
    if result.returncode != 0:
        raise RuntimeError(f"AWS credentials check failed: {result.stderr.strip()}")

    account = result.stdout.strip()
    if account != config.aws.account_id:
        raise RuntimeError(f"Credentials belong to account {account}, expected {config.aws.account_id}")
    print(f"  ✅ AWS credentials valid for account {account}")

    print("✅ Prerequisites validation complete")


def synthesize_infrastructure_template(config: Config) -> Dict[str, Any]:
    """Synthesize the infrastructure stack in-process and return its template."""
    from aws_cdk import App, Environment, assertions
    from infra.infrastructure_stack import InfrastructureStack

    app = App()
    stack = InfrastructureStack(
        app,
        "PolicyCheckStack",
        config=config,
        env=Environment(account=config.aws.account_id, region=config.aws.region),
    )
    return assertions.Template.from_stack(stack).to_json()


def check_template_policies(config: Config, dry_run: bool = True) -> None:
    """Run the template policy checks; fail closed unless this is a dry run."""
    print("🛡️  Checking template policies...")

    findings = run_all_checks(synthesize_infrastructure_template(config))
    for finding in findings:
        print(f"  ➤ {finding}")

    if findings:
        msg = f"{len(findings)} template policy findings"
        if dry_run:
            print(f"WARNING: {msg} (dry-run)")
        else:
            raise RuntimeError(msg)
    else:
        print("  ✅ No template policy findings")


def main(argv: List[str] | None = None) -> None:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Provision, inspect or tear down the BAPS AI frontend stacks"
    )
    parser.add_argument(
        "action",
        choices=ACTIONS,
        help="CDK action to run"
    )
    parser.add_argument(
        "--environment",
        default=os.getenv("ENVIRONMENT", "prod"),
        help="Target environment (default: prod)"
    )
    parser.add_argument(
        "--stack",
        choices=TARGETS,
        default="pipeline",
        help="Stack to act on (default: pipeline)"
    )
    parser.add_argument(
        "--apply",
        action="store_true",
        help="Actually run the CDK command (default: dry-run)"
    )
    parser.add_argument(
        "--skip-policy-check",
        action="store_true",
        help="Skip template policy checks before deploy"
    )

    args = parser.parse_args(argv)

    config = load_config(args.environment)
    dry_run = not args.apply
    targets = ordered_targets(args.action, args.stack)

    # Read-only actions never need confirmation
    if args.apply and args.action in ("deploy", "destroy"):
        destroy_stack = None
        if args.action == "destroy":
            # "all" is confirmed with the pipeline stack name
            destroy_stack = stack_names(config)[targets[-1]]
        require_deploy_allowed_or_exit(
            f"{args.action} requested. Confirm by setting DEPLOY_CONFIRM", destroy_stack=destroy_stack
        )

    try:
        print(f"🎯 Target: {args.environment} ({', '.join(targets)})")
        print(f"🔒 Mode: {'APPLY' if not dry_run else 'DRY-RUN'}")

        if not dry_run:
            validate_prerequisites(config)

        if args.action == "deploy" and not args.skip_policy_check:
            check_template_policies(config, dry_run=dry_run)

        selectors = stack_selectors(config)
        for target in targets:
            run_cdk(args.action, selectors[target], args.environment, dry_run=dry_run)

        if dry_run:
            print("\n💡 Use --apply flag to run against AWS")
        else:
            print(f"\n🎉 {args.action} complete!")

    except Exception as e:
        print(f"❌ {args.action} failed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
