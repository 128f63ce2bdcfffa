#!/usr/bin/env python3
"""
Delete a stored game by id or name.
Usage: python scripts/delete_game.py <game_id_or_name>
"""
import sys

from conquest.api.database import SessionLocal, init_db
from conquest.api.models import Game


def main() -> None:
    if len(sys.argv) < 2:
        print("Usage: python scripts/delete_game.py <game_id_or_name>", file=sys.stderr)
        sys.exit(1)
    key = sys.argv[1].strip()
    if not key:
        print("Error: provide a game id or name.", file=sys.stderr)
        sys.exit(1)

    init_db()
    db = SessionLocal()
    try:
        game = db.query(Game).filter(Game.id == key).first()
        if not game:
            matches = db.query(Game).filter(Game.name == key).all()
            if len(matches) > 1:
                print(f"{len(matches)} games are named {key!r}; use the id instead:")
                for g in matches:
                    print(f"  {g.id}  created {g.created_at}")
                sys.exit(1)
            game = matches[0] if matches else None
        if not game:
            print(f"No game found with id or name: {key!r}")
            return
        name, game_id = game.name, game.id
        db.delete(game)
        db.commit()
        print(f"Deleted game {name!r} ({game_id}).")
    except Exception as e:
        db.rollback()
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    finally:
        db.close()


if __name__ == "__main__":
    main()
