"""
Fetch NFS-e documents for one company from the CLI.
"""

from __future__ import annotations

import argparse
import json
import logging
import uuid

from app.scheduler.nfse_scheduler import get_nfse_scheduler
from app.schemas.nfse import CompanyFetchOutcomeResponse
from db.repositories.errors import CompanyNotFoundError, DocumentStoreError


def main() -> int:
    parser = argparse.ArgumentParser(description="Fetch NFS-e documents for one company now.")
    parser.add_argument("company_id", type=uuid.UUID, help="Company UUID.")
    parser.add_argument(
        "--log-level",
        dest="log_level",
        default="INFO",
        help="Logging level (default: INFO).",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    scheduler = get_nfse_scheduler()
    try:
        outcome = scheduler.fetch_company_now(args.company_id)
    except CompanyNotFoundError as exc:
        print(json.dumps({"error": str(exc)}))
        return 1
    except DocumentStoreError as exc:
        print(json.dumps({"error": f"Document store unavailable: {exc}"}))
        return 1

    payload = CompanyFetchOutcomeResponse.from_outcome(outcome).model_dump(mode="json")
    print(json.dumps(payload, indent=2))
    return 0 if outcome.success else 1


if __name__ == "__main__":
    raise SystemExit(main())
