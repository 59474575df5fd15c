#!/usr/bin/env python3
"""Report readiness of the continuity service (config, packages, database).

Exit 0 when every required check passes, 1 otherwise. Use --json for probes
that parse the output, --skip-database to validate an image without a DB.
"""
import argparse
import json
import sys
from pathlib import Path

# Ensure backend app is on path when run as script
_backend = Path(__file__).resolve().parent.parent
if str(_backend) not in sys.path:
    sys.path.insert(0, str(_backend))

from app.readiness import check_config, check_packages, check_database, is_ready


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--json", action="store_true", help="print one JSON object instead of a table")
    parser.add_argument("--skip-database", action="store_true", help="do not connect to the database")
    args = parser.parse_args(argv)

    checks = {"config": check_config(), "packages": check_packages()}
    if args.skip_database:
        checks["database"] = (True, "skipped")
    else:
        checks["database"] = check_database()
    ready, summary = is_ready(checks)

    if args.json:
        print(json.dumps({"ready": ready, "checks": summary}))
        return 0 if ready else 1

    for name, msg in summary.items():
        status = "OK" if checks[name][0] else "FAIL"
        print(f"  {name}: {status}  {msg}")
    print("")
    print("Readiness: READY" if ready else "Readiness: NOT READY (one or more required checks failed)")
    return 0 if ready else 1


if __name__ == "__main__":
    sys.exit(main())
