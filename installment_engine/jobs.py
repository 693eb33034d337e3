"""Entry point for the scheduler (cron) to run one sweep and exit

Usage:
    installment-engine-jobs auto-pay
    installment-engine-jobs late-fees
    installment-engine-jobs reminders
"""

import argparse
import asyncio
import json
import logging
import sys
from dataclasses import asdict
from typing import List, Optional

from installment_engine.config import settings
from installment_engine.infrastructure.clients.notifications import ReminderDispatcher
from installment_engine.infrastructure.clients.payment_gateway import PaymentGatewayClient
from installment_engine.infrastructure.database.session import session_scope
from installment_engine.infrastructure.observability.logging import setup_logging
from installment_engine.services.sweeps import AutomatedPaymentSweeper, LateFeeSweeper, ReminderSweeper

SWEEPS = ("auto-pay", "late-fees", "reminders")


def run_sweep(name: str, db) -> dict:
    if name == "auto-pay":
        result = asyncio.run(AutomatedPaymentSweeper(db, PaymentGatewayClient()).run())
    elif name == "late-fees":
        result = LateFeeSweeper(db).run()
    else:
        result = asyncio.run(ReminderSweeper(db, ReminderDispatcher()).run())
    return asdict(result)


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Run one installment sweep")
    parser.add_argument("sweep", choices=SWEEPS)
    args = parser.parse_args(argv)

    setup_logging(settings.log_level)
    try:
        with session_scope() as db:
            summary = run_sweep(args.sweep, db)
    except Exception:
        logging.exception(f"Sweep {args.sweep} aborted")
        return 1

    print(json.dumps(summary))
    return 0


if __name__ == "__main__":
    sys.exit(main())
