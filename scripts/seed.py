"""Populate a development database with users, follows, articles and comments.

Everything goes through the service layer so slugs, tag links and the
favorites counter are consistent with what the API would have produced.
"""
import argparse
import asyncio
import random
import time

from conduit.database import Base, async_session, engine
from conduit.exceptions import AppError
from conduit.models import Follow
from conduit.schemas import ArticleCreate, CommentCreate, RegisterRequest
from conduit.security import user_id_from_token
from conduit.services import article_service, auth_service, comment_service

TAGS = ["python", "fastapi", "postgresql", "redis", "docker", "kubernetes",
        "react", "typescript", "aws", "devops", "testing", "performance",
        "security", "microservices", "graphql", "rest-api"]

DEFAULT_PASSWORD = "secret123"


async def seed(small: bool = False):
    num_users = 5 if small else 30
    num_articles = 40 if small else 1000
    max_comments = 2 if small else 5

    print(f"Seeding: {num_users} users, {num_articles} articles")
    start = time.perf_counter()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    async with async_session() as session:
        user_ids: list[int] = []
        for i in range(num_users):
            username = f"user{i:03d}"
            result = await auth_service.register(
                session,
                RegisterRequest(
                    username=username,
                    email=f"{username}@example.com",
                    password=DEFAULT_PASSWORD,
                    name=f"User {i}",
                ),
            )
            user_ids.append(user_id_from_token(result["token"]))
        print(f"  Created {num_users} users (password: {DEFAULT_PASSWORD})")

        follows = 0
        for follower in user_ids:
            for following in random.sample(user_ids, k=min(3, num_users)):
                if following != follower:
                    session.add(Follow(follower_id=follower, following_id=following))
                    follows += 1
        await session.flush()
        print(f"  Created {follows} follow edges")

        slugs: list[str] = []
        for i in range(num_articles):
            topic = random.choice(TAGS)
            article = await article_service.create_article(
                session,
                ArticleCreate(
                    title=f"Article {i}: shipping {topic} to production",
                    description=f"Notes on running {topic} in production.",
                    body=f"This is the full body of article {i}. " * 20,
                    tag_list=random.sample(TAGS, k=random.randint(1, 4)),
                    is_draft=random.random() < 0.1,
                ),
                random.choice(user_ids),
            )
            if not article["isDraft"]:
                slugs.append(article["slug"])
        print(f"  Created {num_articles} articles ({len(slugs)} published)")

        comments = 0
        favorites = 0
        for slug in slugs:
            for _ in range(random.randint(0, max_comments)):
                await comment_service.add_comment(
                    session, slug, random.choice(user_ids), CommentCreate(body="Great read, thanks!")
                )
                comments += 1
            for user_id in random.sample(user_ids, k=random.randint(0, min(3, num_users))):
                try:
                    await article_service.favorite_article(session, slug, user_id)
                    favorites += 1
                except AppError as exc:
                    print(f"  skipped favorite on {slug}: {exc.detail}")
        print(f"  Created {comments} comments, {favorites} favorites")

        await session.commit()

    elapsed = time.perf_counter() - start
    print(f"\nSeeding complete in {elapsed:.1f}s")


def main():
    parser = argparse.ArgumentParser(description="Seed the Conduit database")
    parser.add_argument("--small", action="store_true", help="Use small dataset (40 articles)")
    args = parser.parse_args()
    asyncio.run(seed(small=args.small))


if __name__ == "__main__":
    main()
