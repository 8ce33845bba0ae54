"""Database seeder for the article feed benchmark.

Articles are created in bursts that share one ``created_at`` so page
boundaries regularly fall inside timestamp ties.  User 1 follows a
handful of authors and favorites a slice of articles, giving the feed
and favorites listings something to page through.
"""
import argparse
import asyncio
import random
import time
from datetime import datetime, timedelta, timezone

from sqlalchemy import insert, select

from articlefeed.database import Base, async_session, engine
from articlefeed.models import Article, User, article_favorites, user_follows

TOPICS = ["python", "fastapi", "postgresql", "redis", "docker", "testing",
          "performance", "security", "pagination", "caching"]

TIE_BURST = 4


async def seed(small: bool = False):
    num_users = 10 if small else 50
    num_articles = 100 if small else 10000
    favorites_per_user = 5 if small else 50

    print(f"Seeding: {num_users} users, {num_articles} articles")
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
                bio=f"I am test user number {i}. I write about {random.choice(TOPICS)}.",
            )
            session.add(user)
            users.append(user)
        await session.flush()
        print(f"  Created {len(users)} users")

        # Bursts of TIE_BURST articles share a timestamp, walking back in time.
        batch_size = 500
        created = datetime.now(timezone.utc)
        for batch_start in range(0, num_articles, batch_size):
            batch_end = min(batch_start + batch_size, num_articles)
            for i in range(batch_start, batch_end):
                if i % TIE_BURST == 0:
                    created -= timedelta(minutes=random.randint(1, 90))
                topic = random.choice(TOPICS)
                session.add(Article(
                    title=f"Article {i}: Notes on {topic}",
                    slug=f"article-{i}-notes-on-{topic}",
                    description=f"Notes on running {topic} in production.",
                    body=f"This is the full body of article {i}. " * 20,
                    created_at=created,
                    user_id=random.choice(users).id,
                ))
            await session.flush()
            print(f"  Batch {batch_start}-{batch_end}: articles created")

        viewer, others = users[0], users[1:]
        followed = random.sample(others, k=min(5, len(others)))
        await session.execute(insert(user_follows), [
            {"follower_id": viewer.id, "followed_id": author.id} for author in followed
        ])

        article_ids = list((await session.execute(select(Article.id))).scalars())
        edges = []
        for user in users:
            for article_id in random.sample(article_ids, k=min(favorites_per_user, len(article_ids))):
                edges.append({"user_id": user.id, "article_id": article_id})
        await session.execute(insert(article_favorites), edges)

        await session.commit()

    elapsed = time.perf_counter() - start
    print(f"\nSeeding complete in {elapsed:.1f}s")
    print(f"  Users: {num_users}")
    print(f"  Articles: {num_articles} (ties of {TIE_BURST})")
    print(f"  Follows: {len(followed)} (all by {viewer.username})")
    print(f"  Favorites: {len(edges)}")


def main():
    parser = argparse.ArgumentParser(description="Seed the article feed database")
    parser.add_argument("--small", action="store_true", help="Use small dataset (100 articles)")
    args = parser.parse_args()
    asyncio.run(seed(small=args.small))


if __name__ == "__main__":
    main()
