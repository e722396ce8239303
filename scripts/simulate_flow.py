#!/usr/bin/env python3
"""Simulate an application or renewal flow end-to-end with stub services.

Walks the step graph from its entry step, answering every step from a
canned applicant profile (only the sections the step declares are sent),
adds the requested number of children when the children step comes up,
then checks the review page and submits.  State lives in the in-memory
session backend; the client-application lookup and the benefit submitter
are stubs.

Usage::

    # Adult applying for themselves
    python scripts/simulate_flow.py

    # Parent applying for themselves and two children
    python scripts/simulate_flow.py --type adult-child --children 2

    # Renewal of an existing client application
    python scripts/simulate_flow.py --family renew

    # Print every payload sent
    python scripts/simulate_flow.py -v
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any

# ---------------------------------------------------------------------------
# Ensure the SDK is importable when running from a source checkout.
# ---------------------------------------------------------------------------
_REPO_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(_REPO_ROOT / "src"))

from rich.console import Console  # noqa: E402
from rich.table import Table  # noqa: E402

from dental_flow.backends import MemorySessionBackend  # noqa: E402
from dental_flow.constants import FLOW_FAMILIES  # noqa: E402
from dental_flow.engine import FlowEngine  # noqa: E402
from dental_flow.errors import FlowError  # noqa: E402
from dental_flow.graph import FlowGraphStore  # noqa: E402
from dental_flow.interfaces import (  # noqa: E402
    ApplicationSubmitter,
    ClientApplicationFinder,
    Collaborators,
)
from dental_flow.models.state import FlowState  # noqa: E402
from dental_flow.models.step import ReviewMissing, StepRedirect  # noqa: E402
from dental_flow.store import StateStore  # noqa: E402

SESSION_ID = "sim_session"
MAX_STEPS = 200

# ---------------------------------------------------------------------------
# Canned answers.  Each step receives the subset of keys it owns.
# ---------------------------------------------------------------------------

_ADDRESS = {
    "address": "123 Main St",
    "city": "Ottawa",
    "country": "CAN",
    "province": "ON",
    "postal_code": "K1A 0B1",
}

APPLICANT_PROFILE: dict[str, Any] = {
    "terms_and_conditions": {
        "acknowledge_terms": True,
        "acknowledge_privacy": True,
        "share_data": True,
    },
    "has_filed_taxes": True,
    "date_of_birth": "1980-05-01",
    "all_children_under_18": True,
    "disability_tax_credit": True,
    "living_independently": True,
    "applicant_information": {
        "first_name": "Alex",
        "last_name": "Tremblay",
        "social_insurance_number": "046 454 286",
        "marital_status": "single",
    },
    "contact_information": {"phone_number": "555-555-0100", "email": "alex@example.com"},
    "mailing_address": _ADDRESS,
    "is_home_address_same_as_mailing_address": True,
    "communication_preferences": {"preferred_language": "en", "preferred_method": "email"},
    "dental_insurance": False,
    "has_federal_provincial_territorial_benefits": False,
    # Renewal confirmations
    "has_marital_status_changed": False,
    "has_phone_changed": False,
    "has_address_changed": False,
    "demographic_survey": {},
}

CHILD_PROFILE: dict[str, Any] = {
    "information": {
        "first_name": "Robin",
        "last_name": "Tremblay",
        "date_of_birth": "2015-03-10",
        "is_parent": True,
        "has_social_insurance_number": False,
    },
    "dental_insurance": False,
    "has_federal_provincial_territorial_benefits": False,
    "demographic_survey": {},
}


# ---------------------------------------------------------------------------
# Stub collaborators
# ---------------------------------------------------------------------------


class SimClientFinder(ClientApplicationFinder):
    """Matches every applicant to the same client application."""

    async def find(self, basic_info: dict[str, Any]) -> dict[str, Any] | None:
        return {"client_number": "00000000001", "application_year_id": "2026"}


class SimSubmitter(ApplicationSubmitter):
    def __init__(self) -> None:
        self.count = 0

    async def submit(self, state: FlowState) -> str:
        self.count += 1
        return f"SIM-{self.count:06d}"


# ---------------------------------------------------------------------------
# Simulation
# ---------------------------------------------------------------------------


class FlowSimulator:
    """Drives one flow from the entry step to submission."""

    def __init__(
        self,
        engine: FlowEngine,
        flow_family: str,
        *,
        children: int = 1,
        verbose: bool = False,
        console: Console | None = None,
    ) -> None:
        self.engine = engine
        self.family = flow_family
        self.children = children
        self.verbose = verbose
        self.console = console or Console()
        self.path: list[str] = []

    def _answers(self, step_id: str, context: str, child: bool) -> dict[str, Any]:
        step = self.engine.graphs.get_graph(context).step(step_id)
        profile = CHILD_PROFILE if child else APPLICANT_PROFILE
        return {name: profile[name] for name in step.sections if name in profile}

    async def run(self, type_of_application: str) -> FlowState | None:
        context = FLOW_FAMILIES[self.family]
        graph = self.engine.graphs.get_graph(context)
        initial = {"type_of_application": type_of_application} if context == "intake" else {}
        profile_type = type_of_application

        state = await self.engine.start_state(self.family, SESSION_ID, initial)
        self.console.print(f"[bold cyan]Flow[/] {self.family} ({context}) id={state.id}")

        step_id, child_id = graph.entry, None
        added = 0
        for _ in range(MAX_STEPS):
            step = graph.step(step_id)
            self.path.append(step_id if child_id is None else f"{step_id} [child]")

            if step.terminal:
                self.console.print(f"  [yellow]■[/] Terminal step: {step_id}")
                return None

            if step_id == graph.review.step:
                return await self._review_and_submit(state.id)

            if step_id == graph.children_step and added < self.children:
                outcome = await self.engine.add_child(self.family, state.id, SESSION_ID)
                added += 1
                self.console.print(f"  [green]+[/] Child {added} added")
            else:
                sections = self._answers(step_id, context, child_id is not None)
                if step_id == graph.type_step:
                    sections["type_of_application"] = profile_type
                if self.verbose:
                    self.console.print(f"    [dim]{json.dumps(sections, ensure_ascii=False)}[/]")
                outcome = await self.engine.complete_step(
                    self.family, state.id, SESSION_ID, step_id, sections, child_id=child_id,
                )

            if isinstance(outcome, StepRedirect):
                self.console.print(
                    f"  [yellow]![/] {step_id} redirected to {outcome.step_id} ({outcome.reason})"
                )
            else:
                self.console.print(f"  [green]✓[/] {step_id} → {outcome.step_id}")
            step_id, child_id = outcome.step_id, outcome.child_id

        self.console.print(f"  [red]ERROR[/] Gave up after {MAX_STEPS} steps")
        return None

    async def _review_and_submit(self, flow_id: str) -> FlowState | None:
        review = await self.engine.review(self.family, flow_id, SESSION_ID)
        if isinstance(review, ReviewMissing):
            self.console.print("  [red]✗[/] Review incomplete:")
            for item in review.fields:
                self.console.print(f"    - {item.field} ({item.reason}) at {item.step_id}")
            return None
        self.console.print("  [green]✓[/] Review complete")
        return await self.engine.submit(self.family, flow_id, SESSION_ID)


def print_summary(console: Console, sim: FlowSimulator, state: FlowState | None) -> None:
    table = Table(title="Simulation summary")
    table.add_column("Item", style="bold")
    table.add_column("Value")
    table.add_row("Flow family", sim.family)
    table.add_row("Steps visited", str(len(sim.path)))
    if state is None:
        table.add_row("Outcome", "[yellow]not submitted[/]")
    else:
        table.add_row("Application flow", state.application_flow or "-")
        table.add_row("Children", str(len(state.children)))
        table.add_row("Confirmation code", state.submission_info.confirmation_code)
    console.print(table)


async def run_simulation(args: argparse.Namespace) -> int:
    graphs = FlowGraphStore()
    graphs.load()
    engine = FlowEngine(
        StateStore(MemorySessionBackend()),
        graphs,
        collaborators=Collaborators(
            client_applications=SimClientFinder(),
            submitter=SimSubmitter(),
        ),
    )
    console = Console()
    sim = FlowSimulator(
        engine, args.family, children=args.children, verbose=args.verbose, console=console,
    )
    try:
        state = await sim.run(args.type)
    except FlowError as exc:
        console.print(f"  [red]ERROR[/] {type(exc).__name__}: {exc}")
        return 1
    print_summary(console, sim, state)
    return 0 if state is not None else 1


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Simulate a dental benefit flow end-to-end with stub services.",
    )
    parser.add_argument(
        "-f", "--family",
        default="apply",
        choices=sorted(FLOW_FAMILIES),
        help="Flow family to run (default: apply)",
    )
    parser.add_argument(
        "-t", "--type",
        default="adult",
        choices=["adult", "adult-child", "child"],
        help="Type of application (default: adult)",
    )
    parser.add_argument(
        "-c", "--children",
        type=int,
        default=1,
        help="Children to add when the flow asks for them (default: 1)",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Print the sections sent for every step",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    sys.exit(asyncio.run(run_simulation(args)))


if __name__ == "__main__":
    main()
