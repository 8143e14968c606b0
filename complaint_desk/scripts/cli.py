#!/usr/bin/env python3
"""
Complaint Desk command line client

Usage:
    # Submit a complaint
    complaint-desk create --title "Refund not received" \
        --description "I was charged twice for order #123 and need a refund." \
        --email a@b.com

    # Dashboard list with filters
    complaint-desk list --status ready --urgency high

    # Follow a ticket until the AI analysis finishes
    complaint-desk watch <ticket-id>

    # Resolve a ready ticket with its draft response
    complaint-desk resolve <ticket-id> --by agent1
"""

import argparse
import asyncio
import sys
from typing import List, Optional

from complaint_desk.config import get_settings
from complaint_desk.lifecycle.reconciler import DashboardReconciler, TicketReconciler
from complaint_desk.models.schemas import TicketListFilters
from complaint_desk.models.ticket import TicketCategory, TicketStatus, TicketUrgency
from complaint_desk.services.errors import TicketClientError
from complaint_desk.services.ticket_client import TicketClient
from complaint_desk.services.ticket_session import TicketDetailSession, submit_ticket
from complaint_desk.views.projections import (
    project_detail,
    project_list,
    project_stats,
    render_detail,
    render_list,
    render_stats,
)

def print_result(success: bool, message: str):
    """Print a one-line outcome"""
    icon = "✅" if success else "❌"
    print(f"{icon} {message}")


def print_field_errors(field_errors):
    for field, message in field_errors.items():
        print(f"   - {field}: {message}")


async def cmd_create(client: TicketClient, args) -> int:
    result = await submit_ticket(client, {
        "title": args.title,
        "description": args.description,
        "customer_email": args.email,
        "customer_name": args.name,
    })
    if not result.ok:
        print_result(False, result.error)
        print_field_errors(result.field_errors)
        return 1
    ack = result.value
    print_result(True, f"{ack.message} (id={ack.id}, status={ack.status.value})")
    return 0


async def cmd_list(client: TicketClient, args) -> int:
    filters = TicketListFilters(
        status=args.status,
        urgency=args.urgency,
        category=args.category,
        limit=args.limit,
        offset=args.offset,
    )
    try:
        listing = await client.list_tickets(filters)
    except TicketClientError as e:
        print_result(False, e.message)
        return 1
    print(render_list(project_list(listing.items)))
    print(f"\n{len(listing.items)} shown, total {listing.total}")
    return 0


async def cmd_stats(client: TicketClient, args) -> int:
    try:
        stats = await client.get_stats()
    except TicketClientError as e:
        print_result(False, e.message)
        return 1
    print(render_stats(project_stats(stats)))
    return 0


async def cmd_show(client: TicketClient, args) -> int:
    try:
        ticket = await client.get_ticket(args.ticket_id)
    except TicketClientError as e:
        print_result(False, e.message)
        return 1
    print(render_detail(project_detail(ticket)))
    return 0


async def cmd_watch(client: TicketClient, args) -> int:
    async with TicketReconciler(client, args.ticket_id, interval=args.interval) as reconciler:
        last_status: Optional[TicketStatus] = None
        while True:
            ticket = reconciler.ticket
            if ticket is not None and ticket.status != last_status:
                last_status = ticket.status
                print(f"… {ticket.id}: {ticket.status.value}")
            if not await reconciler.wait_for_refresh():
                break

    if reconciler.ticket is None or reconciler.error:
        print_result(False, reconciler.error or "Ticket could not be loaded")
        return 1
    print()
    print(render_detail(project_detail(reconciler.ticket, error=reconciler.error)))
    return 0


async def cmd_dashboard(client: TicketClient, args) -> int:
    filters = TicketListFilters(status=args.status, urgency=args.urgency)
    async with DashboardReconciler(client, filters, interval=args.interval) as dashboard:
        for tick in range(args.ticks):
            if tick and not await dashboard.wait_for_refresh():
                break
            print(f"\n===== Dashboard (refresh {tick + 1}/{args.ticks}) =====")
            print(render_stats(project_stats(dashboard.stats)))
            if dashboard.stats_error:
                print(f"Stats error: {dashboard.stats_error}")
            print()
            print(render_list(project_list(dashboard.tickets)))
            if dashboard.list_error:
                print_result(False, dashboard.list_error)
            if not dashboard.is_polling:
                break
    return 0 if dashboard.list_error is None else 1


async def cmd_update(client: TicketClient, args) -> int:
    async with TicketDetailSession(client, args.ticket_id, auto_refresh=False) as session:
        if session.ticket is None:
            print_result(False, session.reconciler.error or "Ticket could not be loaded")
            return 1
        if session.begin_edit():
            session.edit(final_response=args.response, agent_notes=args.notes)
        result = await session.save_draft()
    if not result.ok:
        print_result(False, result.error)
        return 1
    print_result(True, f"Draft saved for ticket {result.value.id}")
    return 0


async def cmd_resolve(client: TicketClient, args) -> int:
    async with TicketDetailSession(client, args.ticket_id, auto_refresh=False) as session:
        if session.ticket is None:
            print_result(False, session.reconciler.error or "Ticket could not be loaded")
            return 1
        result = await session.resolve(
            args.by,
            final_response=args.response,
            agent_notes=args.notes
        )
    if not result.ok:
        print_result(False, result.error)
        print_field_errors(result.field_errors)
        if result.requires_refresh and session.ticket is not None:
            print(f"   Current status: {session.ticket.status.value}")
        return 1
    print_result(True, f"Ticket {result.value.id} resolved by {result.value.resolved_by}")
    return 0


async def cmd_delete(client: TicketClient, args) -> int:
    try:
        await client.delete_ticket(args.ticket_id)
    except TicketClientError as e:
        print_result(False, e.message)
        return 1
    print_result(True, f"Ticket {args.ticket_id} deleted")
    return 0


def build_parser() -> argparse.ArgumentParser:
    settings = get_settings()
    parser = argparse.ArgumentParser(prog="complaint-desk", description="Complaint triage dashboard client")
    parser.add_argument("--api-url", default=None, help=f"Ticket Store URL (default: {settings.api_url})")
    sub = parser.add_subparsers(dest="command", required=True)

    statuses = [s.value for s in TicketStatus]
    urgencies = [u.value for u in TicketUrgency]
    categories = [c.value for c in TicketCategory]

    p = sub.add_parser("create", help="Submit a complaint")
    p.add_argument("--title", required=True)
    p.add_argument("--description", required=True)
    p.add_argument("--email", required=True)
    p.add_argument("--name", default=None)
    p.set_defaults(handler=cmd_create)

    p = sub.add_parser("list", help="List tickets")
    p.add_argument("--status", choices=statuses)
    p.add_argument("--urgency", choices=urgencies)
    p.add_argument("--category", choices=categories)
    p.add_argument("--limit", type=int, default=settings.default_page_size)
    p.add_argument("--offset", type=int, default=None)
    p.set_defaults(handler=cmd_list)

    p = sub.add_parser("stats", help="Show ticket statistics")
    p.set_defaults(handler=cmd_stats)

    p = sub.add_parser("show", help="Show one ticket")
    p.add_argument("ticket_id")
    p.set_defaults(handler=cmd_show)

    p = sub.add_parser("watch", help="Follow a ticket until analysis finishes")
    p.add_argument("ticket_id")
    p.add_argument("--interval", type=float, default=settings.detail_poll_interval)
    p.set_defaults(handler=cmd_watch)

    p = sub.add_parser("dashboard", help="Auto-refreshing list and stats")
    p.add_argument("--status", choices=statuses)
    p.add_argument("--urgency", choices=urgencies)
    p.add_argument("--interval", type=float, default=settings.dashboard_poll_interval)
    p.add_argument("--ticks", type=int, default=3, help="Number of refreshes to print")
    p.set_defaults(handler=cmd_dashboard)

    p = sub.add_parser("update", help="Save a draft response or agent notes")
    p.add_argument("ticket_id")
    p.add_argument("--response", default=None)
    p.add_argument("--notes", default=None)
    p.set_defaults(handler=cmd_update)

    p = sub.add_parser("resolve", help="Resolve a ready ticket")
    p.add_argument("ticket_id")
    p.add_argument("--by", required=True, help="Resolving agent")
    p.add_argument("--response", default=None, help="Final response (default: current draft)")
    p.add_argument("--notes", default=None)
    p.set_defaults(handler=cmd_resolve)

    p = sub.add_parser("delete", help="Delete a ticket (admin)")
    p.add_argument("ticket_id")
    p.set_defaults(handler=cmd_delete)

    return parser


async def run(argv: Optional[List[str]] = None, client: Optional[TicketClient] = None) -> int:
    args = build_parser().parse_args(argv)
    client = client or TicketClient(base_url=args.api_url)
    return await args.handler(client, args)


def main():
    sys.exit(asyncio.run(run()))


if __name__ == "__main__":
    main()
