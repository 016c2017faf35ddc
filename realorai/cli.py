"""
Real or AI CLI - Command-line interface for the engine.

Usage:
    realorai serve                          Run the HTTP API
    realorai seed <data_dir>                Write a demo catalog snapshot
    realorai leaderboard <data_dir>         Print the leaderboard
    realorai stats <data_dir> <player_id>   Print a player's statistics
    realorai play <data_dir>                Play one session in the terminal
"""

import argparse
import random
import sys
import time

from .config import Settings, configure_logging


DEMO_CATEGORIES = ("portrait", "landscape", "object", "abstract")


def main(argv=None):
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Real or AI - Guessing game session engine",
        prog="realorai",
    )
    parser.add_argument("--log-level", default=None, help="Logging level (default from REALORAI_LOG_LEVEL)")
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # Serve command
    serve_parser = subparsers.add_parser("serve", help="Run the HTTP API")
    serve_parser.add_argument("--host", default="127.0.0.1", help="Bind address")
    serve_parser.add_argument("--port", type=int, default=8000, help="Bind port")

    # Seed command
    seed_parser = subparsers.add_parser("seed", help="Write a demo catalog snapshot")
    seed_parser.add_argument("data_dir", help="Snapshot directory")
    seed_parser.add_argument("--pairs", type=int, default=20, help="Number of pairs to create")
    seed_parser.add_argument("--seed", type=int, default=None, help="Random seed")

    # Leaderboard command
    board_parser = subparsers.add_parser("leaderboard", help="Print the leaderboard")
    board_parser.add_argument("data_dir", help="Snapshot directory")
    board_parser.add_argument("--mode", choices=["daily", "streak"], default=None)
    board_parser.add_argument("--limit", type=int, default=10)

    # Stats command
    stats_parser = subparsers.add_parser("stats", help="Print a player's statistics")
    stats_parser.add_argument("data_dir", help="Snapshot directory")
    stats_parser.add_argument("player_id", help="Player id")

    # Play command
    play_parser = subparsers.add_parser("play", help="Play one session in the terminal")
    play_parser.add_argument("data_dir", help="Snapshot directory")
    play_parser.add_argument("--mode", choices=["daily", "streak"], default="streak")
    play_parser.add_argument("--player", default=None, help="Player id (anonymous if omitted)")

    args = parser.parse_args(argv)

    settings = Settings.from_env()
    configure_logging(args.log_level or settings.log_level)

    if args.command == "serve":
        cmd_serve(args)
    elif args.command == "seed":
        cmd_seed(args)
    elif args.command == "leaderboard":
        cmd_leaderboard(args)
    elif args.command == "stats":
        cmd_stats(args)
    elif args.command == "play":
        cmd_play(args)
    else:
        parser.print_help()
        sys.exit(1)


def _load_store(data_dir):
    from .store import InMemoryStore, SnapshotStore

    store = InMemoryStore()
    snapshots = SnapshotStore(data_dir)
    try:
        snapshots.load(store)
    except ValueError as e:
        print(f"Error: {e}")
        sys.exit(1)
    return store, snapshots


def cmd_serve(args):
    """Run the HTTP API with uvicorn."""
    import uvicorn
    from .api.app import create_app

    uvicorn.run(create_app(), host=args.host, port=args.port)


def cmd_seed(args):
    """Write a demo catalog of placeholder images and pairs."""
    from .engine import PairCatalog

    if args.pairs < 1:
        print("Error: --pairs must be at least 1")
        sys.exit(1)

    store, snapshots = _load_store(args.data_dir)
    catalog = PairCatalog(store)
    rng = random.Random(args.seed)

    for i in range(args.pairs):
        category = DEMO_CATEGORIES[i % len(DEMO_CATEGORIES)]
        difficulty = i % 5 + 1
        ai = catalog.register_image(
            filename=f"demo-ai-{i:03d}.webp",
            category=category,
            difficulty=difficulty,
            is_ai_generated=True,
            quality_score=round(rng.uniform(5, 10), 1),
            source_info="demo",
            tags=["demo"],
        )
        real = catalog.register_image(
            filename=f"demo-real-{i:03d}.webp",
            category=category,
            difficulty=rng.randint(1, difficulty),
            is_ai_generated=False,
            quality_score=round(rng.uniform(5, 10), 1),
            source_info="demo",
            tags=["demo"],
        )
        catalog.create_pair(ai.id, real.id)

    snapshots.save(store)
    counts = store.counts()
    print(f"Seeded {args.data_dir}: {counts['images']} images, {counts['pairs']} pairs")


def cmd_leaderboard(args):
    """Print the leaderboard."""
    from .engine import StatsAggregator

    store, _ = _load_store(args.data_dir)
    try:
        entries = StatsAggregator(store).leaderboard(args.mode, args.limit)
    except ValueError as e:
        print(f"Error: {e}")
        sys.exit(1)

    if not entries:
        print("No completed games yet.")
        return

    print(f"{'#':>3}  {'player':<20} {'best':>7} {'streak':>6} {'games':>5}")
    for entry in entries:
        print(
            f"{entry.rank:>3}  {entry.player_id:<20} {entry.best_score:>7} "
            f"{entry.best_streak:>6} {entry.total_games:>5}"
        )


def cmd_stats(args):
    """Print a player's statistics."""
    from .engine import StatsAggregator

    store, _ = _load_store(args.data_dir)
    stats = StatsAggregator(store)
    summary = stats.player_stats(args.player_id)
    if summary.total_games == 0:
        print(f"No games found for {args.player_id}")
        return

    print(f"Player: {summary.player_id}")
    print(f"Games: {summary.total_games} ({summary.daily_games} daily, {summary.streak_games} streak)")
    print(f"Total score: {summary.total_score}")
    print(f"Best streak: {summary.best_streak}")
    print(f"Accuracy: {summary.average_accuracy}%")
    print(f"Average response: {summary.average_response_time} ms")
    rank = stats.player_rank(args.player_id)
    if rank:
        print(f"Rank: {rank.rank} of {rank.total_players} (top {rank.percentile}%)")


def cmd_play(args):
    """Play one session in the terminal."""
    from .engine import GameError, SessionEngine

    store, snapshots = _load_store(args.data_dir)
    engine = SessionEngine(store)
    rng = random.Random()

    try:
        session = engine.start(args.mode, args.player)
    except GameError as e:
        print(f"Error: {e.message}")
        sys.exit(1)

    print(f"Session {session.session_id} ({args.mode})")
    print("Which image is AI-generated? Answer 1 or 2, q to quit.\n")

    result = None
    try:
        while result is None:
            shown = engine.next_pair(session.session_id)
            images = [shown.pair.ai_image, shown.pair.real_image]
            rng.shuffle(images)

            print(f"Round {shown.round_number} (difficulty {shown.pair.pair.difficulty})")
            for position, image in enumerate(images, start=1):
                print(f"  {position}. {image.filename}")

            started = time.monotonic()
            answer = input("> ").strip().lower()
            elapsed = int((time.monotonic() - started) * 1000)
            if answer == "q":
                result = engine.end(session.session_id)
                break
            if answer not in ("1", "2"):
                print("Answer 1 or 2.\n")
                continue

            picked = images[int(answer) - 1]
            choice = "ai" if picked.is_ai_generated else "real"
            outcome = engine.submit_round(
                session.session_id, shown.pair.pair.pair_id, choice, elapsed
            )
            verdict = "Correct" if outcome.is_correct else "Wrong"
            print(f"{verdict}! +{outcome.points_earned} (total {outcome.session.total_score})\n")
            result = outcome.game_result
    except GameError as e:
        print(f"Error: {e.message}")
        sys.exit(1)
    finally:
        snapshots.save(store)

    stats = result.final_stats
    print(f"Game over: {result.total_score} points")
    print(f"{stats.correct_answers}/{stats.total_rounds} correct ({stats.accuracy_percentage}%)")


if __name__ == "__main__":
    main()
