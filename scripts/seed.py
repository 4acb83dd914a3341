"""Database seeder for local development.

Planets and memberships are created through the service layer so every
seeded planet satisfies the ownership invariant.
"""
import asyncio
import argparse
import random
import time

from app.database import engine, async_session, Base
from app.models import User
from app.schemas import ArticleCreate, PlanetCreate
from app.services import article_service, membership_service, planet_service

TOPICS = ["astronomy", "gardening", "chess", "cycling", "photography", "jazz",
          "baking", "hiking", "python", "retro-games", "poetry", "climbing"]


async def seed(small: bool = False):
    num_users = 10 if small else 200
    num_planets = 5 if small else len(TOPICS)
    joins_per_planet = 4 if small else 40
    articles_per_planet = 3 if small else 50

    print(f"Seeding: {num_users} users, {num_planets} planets")
    start = time.perf_counter()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    async with async_session() as session:
        users = []
        for i in range(num_users):
            user = User(
                username=f"user_{i:04d}",
                email=f"user_{i:04d}@example.com",
                display_name=f"User {i}",
                is_superuser=(i == 0),
            )
            session.add(user)
            users.append(user)
        await session.flush()
        print(f"  Created {len(users)} users (user_0000 is a superuser)")

        totals = {"approved": 0, "rejected": 0, "pending": 0, "articles": 0}
        for topic in TOPICS[:num_planets]:
            owner = random.choice(users[1:])
            planet = await planet_service.create_planet(
                session,
                owner.id,
                PlanetCreate(
                    name=topic.title(),
                    description=f"Everything about {topic}.",
                    published=random.random() > 0.2,
                ),
            )

            applicants = random.sample([u for u in users if u.id != owner.id], k=joins_per_planet)
            for applicant in applicants:
                await membership_service.join_planet(session, applicant.id, planet["id"])
                roll = random.random()
                if roll < 0.7:
                    await membership_service.approve_application(
                        session, owner.id, applicant.id, planet["id"]
                    )
                    totals["approved"] += 1
                elif roll < 0.8:
                    await membership_service.reject_application(
                        session, owner.id, applicant.id, planet["id"]
                    )
                    totals["rejected"] += 1
                else:
                    totals["pending"] += 1

            for n in range(articles_per_planet):
                await article_service.create_article(
                    session,
                    owner.id,
                    planet["id"],
                    ArticleCreate(
                        title=f"{topic.title()} notes #{n}",
                        content=f"Notes on {topic}, part {n}. " * 20,
                        summary=f"Part {n} of the {topic} series.",
                    ),
                )
                totals["articles"] += 1

            print(f"  Planet {planet['name']!r}: owner {owner.username}")

        await session.commit()

    elapsed = time.perf_counter() - start
    print(f"\nSeeding complete in {elapsed:.1f}s")
    print(f"  Memberships approved: {totals['approved']}")
    print(f"  Memberships rejected: {totals['rejected']}")
    print(f"  Memberships pending:  {totals['pending']}")
    print(f"  Articles: {totals['articles']}")


def main():
    parser = argparse.ArgumentParser(description="Seed the planet database")
    parser.add_argument("--small", action="store_true", help="Use small dataset (5 planets)")
    args = parser.parse_args()
    asyncio.run(seed(small=args.small))


if __name__ == "__main__":
    main()
