"""
CLI subcommand implementations for figma-namer.

Subcommands::

    figma-namer health
    figma-namer analyze --url U [--token T] [--vlm-key K] [--context C]
    figma-namer name    --url U [--token T] [--provider P] [--vlm-key K]
                        [--context C] [--platform P] [--batch-size N] [--output FILE]
    figma-namer export  SESSION_ID [--format json|csv] [--output FILE]
    figma-namer config  show
    figma-namer config  set KEY VALUE
"""

import argparse
import json
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

from contracts.v1.schemas import NamerConfigOverrides
from namer_platform.config import (
    AVAILABLE_PROVIDERS,
    DEFAULT_PLATFORM,
    DEFAULT_PROVIDER,
    PLATFORMS,
    request_timeout_seconds,
    resolve_api_key,
    resolve_api_url,
    resolve_figma_token,
)
from namer_platform.core_client import CoreClient, CoreClientError
from namer_platform.flow_controller import FlowController, NamingParams
from namer_platform.flow_state_machine import FlowStatus
from namer_platform.user_config import CONFIG_KEYS, load_user_config, set_user_config_value

from .interface import ProgressPrinter, print_analysis, print_results, write_results


def _build_client(args) -> CoreClient:
    user_config = load_user_config()
    base_url = resolve_api_url(getattr(args, "api_url", None), user_config.api_url)
    return CoreClient(base_url=base_url, timeout_seconds=request_timeout_seconds())


def _config_overrides(args) -> NamerConfigOverrides | None:
    batch_size = getattr(args, "batch_size", None)
    if batch_size is None:
        return None
    return NamerConfigOverrides(batch_size=batch_size)


def _resolve_or_exit(resolver, *resolver_args):
    try:
        return resolver(*resolver_args)
    except ValueError as e:
        print(f"Error: {e}")
        sys.exit(1)


# ---------------------------------------------------------------------------
# Subcommand: health
# ---------------------------------------------------------------------------

def cmd_health(args):
    client = _build_client(args)
    try:
        status = client.health()
    except CoreClientError as e:
        print(f"✗ {client.base_url} is not reachable: {e}")
        sys.exit(1)
    print(f"✓ {client.base_url}: {json.dumps(status)}")


# ---------------------------------------------------------------------------
# Subcommand: analyze
# ---------------------------------------------------------------------------

def cmd_analyze(args):
    token = _resolve_or_exit(resolve_figma_token, args.token)
    flow = FlowController(core_client=_build_client(args))

    print(f"\nAnalyzing {args.url} ...")
    state = flow.analyze(
        args.url,
        token,
        vlm_api_key=args.vlm_key,
        global_context=args.context,
        config=_config_overrides(args),
    )
    if state.status != FlowStatus.COUNTED:
        print(f"Error: {state.error}")
        sys.exit(1)

    print_analysis(state.analyze_result)


# ---------------------------------------------------------------------------
# Subcommand: name
# ---------------------------------------------------------------------------

def cmd_name(args):
    user_config = load_user_config()
    provider = args.provider or user_config.provider or DEFAULT_PROVIDER
    platform = args.platform or user_config.platform or DEFAULT_PLATFORM
    if provider not in AVAILABLE_PROVIDERS:
        print(f"Error: Unknown provider '{provider}'. Available: {', '.join(AVAILABLE_PROVIDERS)}")
        sys.exit(1)

    token = _resolve_or_exit(resolve_figma_token, args.token)
    vlm_key = _resolve_or_exit(resolve_api_key, provider, args.vlm_key)
    overrides = _config_overrides(args)

    flow = FlowController(core_client=_build_client(args))
    flow.subscribe(ProgressPrinter())

    print(f"\nAnalyzing {args.url} ...")
    state = flow.analyze(args.url, token, vlm_api_key=vlm_key, global_context=args.context, config=overrides)
    if state.status != FlowStatus.COUNTED:
        print(f"Error: {state.error}")
        sys.exit(1)
    print_analysis(state.analyze_result)

    print(f"\nNaming with {provider} (platform: {platform}) ...")
    state = flow.start_naming(
        NamingParams(
            figma_token=token,
            vlm_provider=provider,
            vlm_api_key=vlm_key,
            global_context=args.context or "",
            platform=platform,
            config=overrides,
        )
    )
    if state.status != FlowStatus.NAMING:
        print(f"Error: {state.error}")
        sys.exit(1)

    try:
        state = flow.wait()
    except KeyboardInterrupt:
        print("\nInterrupted, keeping the results received so far.")
        state = flow.go_to_preview()

    if state.status != FlowStatus.PREVIEWING:
        flow.reset()
        print(f"Error: {state.error or 'Naming did not complete.'}")
        sys.exit(1)

    print_results(state.results)
    if args.output:
        path = write_results(state.results, Path(args.output))
        print(f"\n✓ Wrote {len(state.results)} result(s) to {path}")
    print(f"  Session: {state.session_id}")
    flow.finish()


# ---------------------------------------------------------------------------
# Subcommand: export
# ---------------------------------------------------------------------------

def cmd_export(args):
    client = _build_client(args)
    try:
        body = client.export(args.session_id, args.format)
    except CoreClientError as e:
        print(f"Error: {e}")
        sys.exit(1)

    if args.output:
        path = Path(args.output)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(body, encoding="utf-8")
        print(f"✓ Exported to {path}")
    else:
        print(body)


# ---------------------------------------------------------------------------
# Subcommand: config
# ---------------------------------------------------------------------------

def cmd_config(args):
    if args.config_action == "show":
        config = load_user_config()
        for key in CONFIG_KEYS:
            print(f"  {key}: {getattr(config, key) or '(not set)'}")
    elif args.config_action == "set":
        try:
            set_user_config_value(args.key, args.value)
        except ValueError as e:
            print(f"Error: {e}")
            sys.exit(1)
        print(f"✓ Saved {args.key}")


# ---------------------------------------------------------------------------
# Argument parser
# ---------------------------------------------------------------------------

def build_parser() -> argparse.ArgumentParser:
    """Build the top-level argument parser with subcommands."""
    parser = argparse.ArgumentParser(
        prog="figma-namer",
        description="Batch-name design layers with a vision-language model",
    )
    parser.add_argument("--api-url", help="Naming server base URL (or set FIGMA_NAMER_API_URL)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    # --- health ---
    subparsers.add_parser("health", help="Check that the naming server is reachable")

    # --- analyze ---
    p_analyze = subparsers.add_parser("analyze", help="Count the nameable nodes in a design file")
    p_analyze.add_argument("--url", required=True, help="Figma file or design URL")
    p_analyze.add_argument("--token", help="Figma access token (or set FIGMA_TOKEN)")
    p_analyze.add_argument("--vlm-key", help="Model key enabling AI page-structure analysis")
    p_analyze.add_argument("--context", help="Free-text context about the design")
    p_analyze.add_argument("--batch-size", type=int, help="Nodes per model batch")

    # --- name ---
    p_name = subparsers.add_parser("name", help="Analyze, then name every node")
    p_name.add_argument("--url", required=True, help="Figma file or design URL")
    p_name.add_argument("--token", help="Figma access token (or set FIGMA_TOKEN)")
    p_name.add_argument(
        "--provider", choices=list(AVAILABLE_PROVIDERS.keys()),
        help=f"Model provider (default: {DEFAULT_PROVIDER})",
    )
    p_name.add_argument("--vlm-key", help="Model API key (or set the provider's env var)")
    p_name.add_argument("--context", help="Free-text context about the design")
    p_name.add_argument("--platform", choices=PLATFORMS, help=f"Target platform (default: {DEFAULT_PLATFORM})")
    p_name.add_argument("--batch-size", type=int, help="Nodes per model batch")
    p_name.add_argument("--output", help="Write results to this .json or .csv file")

    # --- export ---
    p_export = subparsers.add_parser("export", help="Download a session's results from the server")
    p_export.add_argument("session_id", help="Naming session ID")
    p_export.add_argument("--format", choices=("json", "csv"), default="json")
    p_export.add_argument("--output", help="Write to this file instead of stdout")

    # --- config ---
    p_config = subparsers.add_parser("config", help="View or change saved preferences")
    sp_config = p_config.add_subparsers(dest="config_action", required=True)
    sp_config.add_parser("show", help="Show saved preferences")
    sp_set = sp_config.add_parser("set", help="Save a preference")
    sp_set.add_argument("key", choices=CONFIG_KEYS)
    sp_set.add_argument("value")

    return parser


def main(argv=None):
    """Entry point for the CLI."""
    # Load .env (if present) so FIGMA_TOKEN and model keys are available via os.environ
    load_dotenv()

    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command == "health":
        cmd_health(args)
    elif args.command == "analyze":
        cmd_analyze(args)
    elif args.command == "name":
        cmd_name(args)
    elif args.command == "export":
        cmd_export(args)
    elif args.command == "config":
        cmd_config(args)
