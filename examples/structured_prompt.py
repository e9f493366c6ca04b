#!/usr/bin/env python3
"""
Structured prompt example.

This example renders a Harmony prompt, decodes it back to text and prints the
assistant stop tokens. It uses the openai_harmony backed engine, so no native
library build is required.
"""

from harmony_bridge import BridgeConfig, HarmonyEngine


def main():
    engine = HarmonyEngine.from_config(BridgeConfig(engine="reference"))

    with engine.create_encoder() as encoder:
        # No system message at all
        bare = encoder.render_prompt(user_message="What is a tokenizer?")
        # An explicitly empty system message renders differently
        empty_system = encoder.render_prompt(
            system_message="",
            user_message="What is a tokenizer?",
        )

        print(f"Without system message: {len(bare)} tokens")
        print(f"With empty system message: {len(empty_system)} tokens")
        print("\nRendered prompt:")
        print(encoder.decode(bare))

        stop_tokens = encoder.get_stop_tokens()
        print(f"\nStop tokens: {stop_tokens}")


if __name__ == "__main__":
    main()
