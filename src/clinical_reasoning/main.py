"""
Main entry point for the clinical reasoning session core.

Runs a scripted collaborative walkthrough against the catalog seeded from
fixtures, keeping the session in memory or in the configured database, and
prints the resulting session.
"""

import argparse
import asyncio
import logging
import sys

from clinical_reasoning.catalog.repository import (
    InMemoryCaseRepository,
    InMemoryFamilyRepository,
    InMemoryGroupRepository,
)
from clinical_reasoning.config import get_settings
from clinical_reasoning.db import SqlSessionRepository, create_engine, create_session_factory, init_models
from clinical_reasoning.session.phases import PhaseTransitionController
from clinical_reasoning.session.repository import InMemorySessionRepository, SessionRepository
from clinical_reasoning.session.schemas import Session, SessionPhase
from clinical_reasoning.session.store import CollaborativeSessionStore


def setup_logging() -> None:
    """Configure application logging."""
    settings = get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="clinical-reasoning",
        description="Run a scripted collaborative clinical reasoning session",
    )
    parser.add_argument("--group-id", default="group-1", help="Group to run the walkthrough for")
    parser.add_argument("--json", action="store_true", help="Print the full session as JSON")
    parser.add_argument(
        "--persist",
        action="store_true",
        help="Store the session in the configured database instead of memory",
    )
    return parser


def build_store(sessions: SessionRepository | None = None) -> CollaborativeSessionStore:
    """Wire a session store to the fixture-backed catalog repositories."""
    settings = get_settings()
    return CollaborativeSessionStore(
        sessions=sessions if sessions is not None else InMemorySessionRepository(),
        groups=InMemoryGroupRepository.from_fixtures(settings.fixtures_path),
        families=InMemoryFamilyRepository.from_fixtures(settings.fixtures_path),
        cases=InMemoryCaseRepository.from_fixtures(settings.fixtures_path),
        settings=settings,
    )


async def run_walkthrough(store: CollaborativeSessionStore, group_id: str) -> Session:
    """
    Drive one group through every phase.

    Learners propose hypotheses, peers comment during review, and the
    facilitator moves the group forward at each step.
    """
    logger = logging.getLogger(__name__)
    controller = PhaseTransitionController(store)
    group = await store.get_group(group_id)
    learners = [m.user_id for m in group.members if m.user_id != group.facilitator_id]
    if not learners:
        raise RuntimeError(f"Group {group_id} has no learners")

    proposals = [
        ("Lumbar radiculopathy (L5)", "Tingling into the calf and a positive straight leg raise suggest nerve root irritation.", "neuropathic"),
        ("Mechanical low back pain", "Onset after repeated lifting, pain modulated by load and posture.", "mechanical"),
        ("Fear-avoidance contributing to disability", "High kinesiophobia score and job worries point to psychosocial drivers.", "psychosocial"),
    ]
    hypotheses = []
    for i, (text, rationale, family_id) in enumerate(proposals):
        author = learners[i % len(learners)]
        hypothesis = await store.add_hypothesis(
            group_id,
            {"text": text, "rationale": rationale, "family_id": family_id},
            actor_id=author,
        )
        hypotheses.append(hypothesis)
        logger.info(f"{author} proposed: {text}")

    await controller.advance(group_id, SessionPhase.PEER_REVIEW, actor_id=group.facilitator_id)

    for i, hypothesis in enumerate(hypotheses):
        reviewer = learners[(i + 1) % len(learners)]
        await store.add_comment(
            group_id,
            hypothesis.hypothesis_id,
            {
                "text": "The straight leg raise finding supports this; what about the morning stiffness?",
                "type": "evidence-support",
                "category": "evidence-analysis",
                "references_evidence": True,
            },
            actor_id=reviewer,
        )
    await store.add_discussion(
        group_id,
        {
            "text": "Which findings discriminate between radicular and somatic referred pain?",
            "type": "facilitator-prompt",
            "category": "evidence-analysis",
        },
        actor_id=group.facilitator_id,
    )

    await controller.advance(group_id, SessionPhase.SYNTHESIS, actor_id=group.facilitator_id)
    await store.add_comment(
        group_id,
        hypotheses[0].hypothesis_id,
        {
            "text": "I initially anchored on the disc; the psychosocial picture changed my priorities.",
            "type": "reflection",
            "category": "reflection",
        },
        actor_id=learners[0],
    )
    return await controller.advance(group_id, SessionPhase.COMPLETED, actor_id=group.facilitator_id)


def print_summary(session: Session) -> None:
    score = session.score
    metrics = session.facilitator_metrics
    print(f"Group {session.group_id} - phase {session.current_phase.value}")
    print(f"  Hypotheses: {len(session.hypotheses)}  Comments: {session.total_comments}")
    print(
        f"  Score: diversity={score.diversity} coverage={score.coverage}% reasoning={score.reasoning} "
        f"collaboration={score.collaboration} evidence={score.evidence_engagement} "
        f"metacognition={score.metacognition}"
    )
    print(
        f"  Facilitator: equity={metrics.participation_equity}% depth={metrics.discussion_depth}/5 "
        f"alignment={metrics.learning_objective_alignment}%"
    )
    for suggestion in metrics.intervention_suggestions:
        print(f"  ! {suggestion}")


async def run_persisted(group_id: str) -> Session:
    """Run the walkthrough against the configured database in one transaction."""
    engine = create_engine()
    try:
        await init_models(engine)
        async with create_session_factory(engine)() as db:
            session = await run_walkthrough(build_store(SqlSessionRepository(db)), group_id)
            await db.commit()
        return session
    finally:
        await engine.dispose()


async def run(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)
    if args.persist:
        session = await run_persisted(args.group_id)
    else:
        session = await run_walkthrough(build_store(), args.group_id)
    if args.json:
        print(session.model_dump_json(indent=2))
    else:
        print_summary(session)


def main() -> None:
    """Main entry point for the application."""
    setup_logging()

    try:
        asyncio.run(run(sys.argv[1:]))
    except KeyboardInterrupt:
        print("\nSession walkthrough terminated by user.")
        sys.exit(0)
    except Exception as e:
        logging.error(f"Application error: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
