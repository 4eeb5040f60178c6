import argparse
import asyncio
import logging

from init import Session, _engine, init_tables
from ledger_system import (
    AuditService, DonationService, IdentityService, VoteService, eventBus
)
from ledger_system.errors import LedgerError
from notificator import NotificationDispatcher

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Donation ledger admin tool")
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("init-db", help="Create database tables")

    set_status = commands.add_parser("set-status", help="Change donation status")
    set_status.add_argument("transaction_id")
    set_status.add_argument("status", choices=["Pending", "Succeeded", "Failed", "Refunded"])
    set_status.add_argument("--admin", required=True, help="Admin user uid")

    delete = commands.add_parser("delete", help="Delete a donation")
    delete.add_argument("transaction_id")
    delete.add_argument("--admin", required=True, help="Admin user uid")

    commands.add_parser("audit", help="Compare stored counters with source records")

    publish = commands.add_parser("publish-results", help="Publish or hide election results")
    publish.add_argument("state", choices=["on", "off"])
    publish.add_argument("--admin", required=True, help="Admin user uid")

    return parser


async def run_command(args) -> int:
    if args.command == "init-db":
        init_tables(_engine)
        logger.info("Database tables created")
        return 0

    dispatcher = NotificationDispatcher().bind(eventBus)
    try:
        with Session() as session:
            identity = IdentityService(session)

            if args.command == "audit":
                discrepancies = AuditService(session).verifyAll()
                for d in discrepancies:
                    print(f"{d.recordType}\t{d.recordId}\t{d.field}\tstored={d.stored}\texpected={d.expected}")
                return 1 if discrepancies else 0

            caller = identity.getCallerContext(args.admin)

            if args.command == "set-status":
                previous = await DonationService(session).updateDonationStatus(
                    caller, args.transaction_id, args.status
                )
                print(f"{args.transaction_id}: {previous.value} -> {args.status}")

            elif args.command == "delete":
                deleted = await DonationService(session).deleteDonation(caller, args.transaction_id)
                print(f"{args.transaction_id}: {'deleted' if deleted else 'not found'}")

            elif args.command == "publish-results":
                await VoteService(session).setResultsPublished(caller, args.state == "on")
                print(f"Election results {'published' if args.state == 'on' else 'hidden'}")

        # Сообщения уходят после коммита, дожидаемся их перед выходом
        await eventBus.drain()
        return 0

    except LedgerError as e:
        logger.error(f"{args.command} failed: {e}")
        return 1
    finally:
        dispatcher.unbind(eventBus)


async def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    return await run_command(args)


if __name__ == '__main__':
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    try:
        raise SystemExit(asyncio.run(main()))
    except KeyboardInterrupt:
        logger.info("Interrupted")
