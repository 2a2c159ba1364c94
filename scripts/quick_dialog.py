import sys
import os

# Ensure project root on path when executed directly
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from dialogcore.config import get_config  # noqa: E402
from dialogcore.dialog import DialogContext, UserFeedback  # noqa: E402
from dialogcore.logging_setup import configure_logging  # noqa: E402
from dialogcore.runtime import DialogRuntime  # noqa: E402

# Usage: python scripts/quick_dialog.py [trigger ...]

INTERACTIONS = [
    ("click", 75.0),
    ("feed", 85.0),
    ("pet", 90.0),
    ("talk", 80.0),
    ("idle", 70.0),
]


def main():
    cfg = get_config()
    configure_logging(cfg.logging)
    triggers = sys.argv[1:]
    interactions = (
        [(t, 70.0) for t in triggers] if triggers else INTERACTIONS
    )
    with DialogRuntime(cfg.dialog, start_sweeper=False) as rt:
        print("DEFAULT:", rt.orchestrator.default_name)
        print("CHAIN:", rt.orchestrator.fallback_names)
        for turn, (trigger, mood) in enumerate(interactions, start=1):
            ctx = DialogContext(
                trigger=trigger,
                session_id="demo-session",
                current_mood=mood,
                time_of_day="afternoon",
                relationship_level="friend",
                personality_traits={
                    "cheerful": 0.9,
                    "supportive": 0.8,
                    "playful": 0.7,
                    "energetic": 0.6,
                },
                conversation_turn=turn,
                fallback_responses=["Hello there! 👋", "Nice to see you!"],
                fallback_animation="talking",
            )
            resp = rt.generate(ctx)
            print(f"=== {turn}: {trigger} (mood {mood:.0f}) ===")
            print("TEXT:", resp.text)
            print("BACKEND:", resp.backend)
            print("ANIMATION:", resp.animation)
            print("CONFIDENCE:", f"{resp.confidence:.2f}")
            print("TYPE/TONE:", resp.response_type, resp.emotional_tone)
            print("TOPICS:", resp.topics)
            rt.update_memory(ctx, resp, UserFeedback(positive=True, engagement=0.8))
        summary = rt.store.summary("demo-session")
        print("SUMMARY:", summary.to_dict())


if __name__ == "__main__":
    main()
