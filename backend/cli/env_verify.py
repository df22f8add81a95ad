import argparse
import json
import sys

from servesdiag import ServesDiagError
from servesdiag.env_audit import (
    CRITICAL_VARS,
    EXPECTED_ENV_VARS,
    audit_environment,
    collect_env,
    load_expected_vars,
    quick_env_check,
    render_audit,
)


def main(argv=None):
    parser = argparse.ArgumentParser(description="Verify ServesPlatform environment variables and print diagnostics.")
    parser.add_argument("--env-file", help="Overlay values from this .env file")
    parser.add_argument("--no-process-env", action="store_true", help="Ignore the process environment")
    parser.add_argument("--expected", help="YAML file with the expected-variable table")
    parser.add_argument("--probe", action="store_true", help="Also send whoami to the audited URL/token")
    parser.add_argument("--quick", action="store_true", help="Only check the critical variables")
    parser.add_argument("--format", choices=["text", "json"], default="text", help="Output format")
    args = parser.parse_args(argv)

    try:
        env = collect_env(args.env_file, include_process=not args.no_process_env)
        expected = load_expected_vars(args.expected) if args.expected else EXPECTED_ENV_VARS
    except (ServesDiagError, OSError) as e:
        print(f"error: {e}", file=sys.stderr)
        return 2

    if args.quick:
        checks = quick_env_check(env)
        if args.format == "json":
            print(json.dumps(checks, indent=2))
        else:
            for name in CRITICAL_VARS:
                print(f"{'[OK] ' if checks[name] else '[ERR]'} {name}: {'SET' if checks[name] else 'NOT SET'}")
        return 0

    report = audit_environment(env, expected, probe=args.probe)
    if args.format == "json":
        print(json.dumps(report.to_dict(), indent=2))
    else:
        for line in render_audit(report, expected):
            print(line)
    return 0


if __name__ == "__main__":
    sys.exit(main())
