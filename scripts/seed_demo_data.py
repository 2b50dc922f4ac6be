"""Seed idempotent demo data for local/non-production environments."""

from __future__ import annotations

import argparse
import asyncio
from dataclasses import dataclass, field

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.database import SessionLocal, close_engine
from app.core.enums import RoleEnum, SubscriptionStatusEnum
from app.core.security import create_access_token
from app.modules.booking.repository import BookingRepository
from app.modules.identity.models import User
from app.modules.identity.repository import IdentityRepository
from app.modules.identity.service import IdentityService
from app.modules.scheduling.repository import SchedulingRepository
from app.modules.scheduling.schemas import AvailabilityWindowCreate
from app.modules.scheduling.service import SchedulingService
from app.modules.subscriptions.models import Subscription
from app.modules.subscriptions.repository import SubscriptionsRepository

DEMO_ADMIN_EMAIL = "demo-admin@tutorbook.dev"
DEMO_TUTOR_EMAIL = "demo-tutor@tutorbook.dev"
DEMO_PARENT_EMAIL = "demo-parent@tutorbook.dev"

DEMO_TUTOR_TIMEZONE = "America/New_York"
DEMO_COURSE_TITLE = "Algebra I"
DEMO_SESSION_MINUTES = 60

# Monday..Friday afternoons plus a Saturday morning, tutor-local time.
DEMO_WINDOWS = (
    (1, "15:00", "19:00"),
    (2, "15:00", "19:00"),
    (3, "15:00", "19:00"),
    (4, "15:00", "19:00"),
    (5, "15:00", "18:00"),
    (6, "09:00", "12:00"),
)

DEMO_TOKEN_MINUTES = 12 * 60


@dataclass(slots=True)
class SeedStats:
    users_created: int = 0
    windows_created: int = 0
    subscription_created: bool = False
    subscription_id: str | None = None
    tokens: dict[str, str] = field(default_factory=dict)


async def _ensure_user(
    session: AsyncSession,
    *,
    email: str,
    full_name: str,
    role_name: RoleEnum,
    timezone: str,
) -> tuple[User, bool]:
    repository = IdentityRepository(session)
    role = await repository.get_role_by_name(role_name)
    if role is None:
        raise RuntimeError(f"Role {role_name} was not found after ensure_default_roles")

    user = await repository.get_user_by_email(email)
    if user is None:
        user = await repository.create_user(
            email=email,
            full_name=full_name,
            timezone=timezone,
            role=role,
        )
        return user, True

    user.role_id = role.id
    user.timezone = timezone
    user.is_active = True
    await session.flush()
    await session.refresh(user, attribute_names=["role"])
    return user, False


async def _ensure_windows(session: AsyncSession, *, tutor: User) -> int:
    scheduling_service = SchedulingService(
        repository=SchedulingRepository(session),
        booking_repository=BookingRepository(session),
        identity_repository=IdentityRepository(session),
    )
    existing = {
        (item.day_of_week, item.start_time, item.end_time)
        for item in await scheduling_service.list_windows(tutor.id)
    }

    created = 0
    for day_of_week, start_time, end_time in DEMO_WINDOWS:
        if (day_of_week, start_time, end_time) in existing:
            continue
        await scheduling_service.create_window(
            AvailabilityWindowCreate(day_of_week=day_of_week, start_time=start_time, end_time=end_time),
            tutor,
        )
        created += 1
    return created


async def _ensure_subscription(
    session: AsyncSession,
    *,
    parent: User,
    tutor: User,
) -> tuple[Subscription, bool]:
    existing = await session.scalar(
        select(Subscription).where(
            Subscription.parent_id == parent.id,
            Subscription.tutor_id == tutor.id,
            Subscription.status == SubscriptionStatusEnum.ACTIVE,
        ),
    )
    if existing is not None:
        return existing, False

    subscription = await SubscriptionsRepository(session).create_subscription(
        parent_id=parent.id,
        tutor_id=tutor.id,
        course_title=DEMO_COURSE_TITLE,
        session_duration_minutes=DEMO_SESSION_MINUTES,
    )
    return subscription, True


async def _run_seed(*, allow_production: bool) -> SeedStats:
    settings = get_settings()
    app_env = settings.app_env.strip().lower()
    if app_env in {"production", "prod"} and not allow_production:
        raise RuntimeError(
            "Refusing to seed demo data in production. "
            "Re-run with --allow-production only if you are absolutely sure.",
        )

    stats = SeedStats()

    async with SessionLocal() as session:
        try:
            await IdentityService(IdentityRepository(session)).ensure_default_roles()

            admin, admin_created = await _ensure_user(
                session,
                email=DEMO_ADMIN_EMAIL,
                full_name="Demo Admin",
                role_name=RoleEnum.ADMIN,
                timezone="UTC",
            )
            tutor, tutor_created = await _ensure_user(
                session,
                email=DEMO_TUTOR_EMAIL,
                full_name="Demo Tutor",
                role_name=RoleEnum.TUTOR,
                timezone=DEMO_TUTOR_TIMEZONE,
            )
            parent, parent_created = await _ensure_user(
                session,
                email=DEMO_PARENT_EMAIL,
                full_name="Demo Parent",
                role_name=RoleEnum.PARENT,
                timezone=DEMO_TUTOR_TIMEZONE,
            )
            stats.users_created = sum([admin_created, tutor_created, parent_created])

            stats.windows_created = await _ensure_windows(session, tutor=tutor)
            subscription, stats.subscription_created = await _ensure_subscription(
                session,
                parent=parent,
                tutor=tutor,
            )
            stats.subscription_id = str(subscription.id)

            await session.commit()
        except Exception:
            await session.rollback()
            raise

    for label, user in (("admin", admin), ("tutor", tutor), ("parent", parent)):
        stats.tokens[label] = create_access_token(str(user.id), expires_minutes=DEMO_TOKEN_MINUTES)
    return stats


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description=(
            "Seed idempotent demo data for TutorBook (admin, tutor with weekly "
            "windows, parent with an active subscription)."
        ),
    )
    parser.add_argument(
        "--allow-production",
        action="store_true",
        help="Allow seeding even when APP_ENV is production/prod.",
    )
    return parser


def _print_summary(stats: SeedStats) -> None:
    print("Demo seed completed.")
    print(f"- Users created: {stats.users_created}")
    print(f"- Availability windows created: {stats.windows_created}")
    print(f"- Subscription created: {stats.subscription_created}")
    print(f"- Subscription id: {stats.subscription_id}")
    print("")
    print("Demo bearer tokens (non-production only):")
    for label, token in stats.tokens.items():
        print(f"- {label}: {token}")


def main() -> int:
    parser = _build_parser()
    args = parser.parse_args()

    try:
        stats = asyncio.run(_run_seed(allow_production=args.allow_production))
    except Exception as exc:
        print(f"Demo seed failed: {exc}")
        return 1
    finally:
        asyncio.run(close_engine())

    _print_summary(stats)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
