#!/usr/bin/env python3
"""
Command-line interface for envchain.

Builds a wrapper chain over a Gymnasium environment, either from flags or
from a preset, and runs random-action episodes through it.
"""

import argparse
import logging
import sys
from typing import List, Optional, Tuple

import numpy as np

from envchain.backend import GymnasiumBackend
from envchain.config import ChainConfig, get_preset, list_presets
from envchain.env import Context
from envchain.wrappers import make_env


def build_config(args: argparse.Namespace) -> ChainConfig:
    """
    Build the chain configuration from parsed arguments.

    A preset supplies the defaults; explicit flags override it.
    """
    if args.preset is not None:
        config = get_preset(args.preset)
    elif args.env is not None:
        config = ChainConfig(env_name=args.env)
    else:
        raise ValueError("Either --env or --preset is required")

    overrides = config.to_dict()
    if args.env is not None:
        overrides['env_name'] = args.env
    if args.max_steps is not None:
        overrides['max_episode_steps'] = args.max_steps
    if args.alter_default:
        overrides['alter_default_time_limit'] = True
    if args.clip:
        overrides['clip_action'] = True
    if args.rescale is not None:
        overrides['rescale_action'] = tuple(args.rescale)
    if args.filter is not None:
        overrides['filter_keys'] = args.filter
    if args.flatten:
        overrides['flatten_observation'] = True
    if args.seed is not None:
        overrides['seed'] = args.seed

    return ChainConfig.from_dict(overrides)


def run_episodes(config: ChainConfig, num_episodes: int) -> List[Tuple[int, float]]:
    """
    Run random-action episodes through the configured chain.

    Args:
        config: Chain configuration
        num_episodes: Number of episodes to run

    Returns:
        (length, return) per episode
    """
    results = []

    with Context(GymnasiumBackend()) as ctx:
        env = make_env(ctx, config)
        if config.seed is not None:
            env.action_space.seed(config.seed)

        print(f"Environment: {env.name}")
        print(f"  Action space:      {env.action_space!r}")
        print(f"  Observation space: {env.observation_space!r}")
        print()

        try:
            for episode in range(num_episodes):
                env.reset()
                done = False
                length = 0
                total = 0.0
                while not done:
                    _, reward, done = env.step(env.action_space.sample())
                    length += 1
                    total += reward

                results.append((length, total))
                print(f"Episode {episode + 1:3d}: length={length:5d}  return={total:10.3f}")
        finally:
            env.close()

    return results


def main():
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Run random-action episodes through an envchain wrapper chain",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=f"""
Presets: {', '.join(list_presets())}

Examples:
  # CartPole with its registered time limit
  python cli.py --env CartPole-v1 --episodes 5

  # Replace MountainCar's default time limit and clip actions
  python cli.py --env MountainCarContinuous-v0 --max-steps 2000 --alter-default --clip

  # Use a preset and a seed
  python cli.py --preset pendulum_unit --seed 123
        """
    )

    parser.add_argument(
        '--env',
        type=str,
        default=None,
        help='Gymnasium environment id'
    )

    parser.add_argument(
        '--preset',
        type=str,
        default=None,
        choices=list_presets(),
        help='Preset chain configuration'
    )

    parser.add_argument(
        '--episodes',
        type=int,
        default=3,
        help='Number of episodes to run (default: 3)'
    )

    parser.add_argument(
        '--max-steps',
        type=int,
        default=None,
        help='Step cap per episode (TimeLimit)'
    )

    parser.add_argument(
        '--alter-default',
        action='store_true',
        help="Replace the environment's default step cap instead of adding one"
    )

    parser.add_argument(
        '--clip',
        action='store_true',
        help='Clip actions to the action space bounds'
    )

    parser.add_argument(
        '--rescale',
        type=float,
        nargs=2,
        metavar=('A', 'B'),
        default=None,
        help='Rescale actions from [A, B] to the action space bounds'
    )

    parser.add_argument(
        '--filter',
        type=str,
        nargs='+',
        default=None,
        help='Observation keys to keep (Dict observations only)'
    )

    parser.add_argument(
        '--flatten',
        action='store_true',
        help='Flatten observations into one vector'
    )

    parser.add_argument(
        '--seed',
        type=int,
        default=None,
        help='Random seed for reproducibility'
    )

    parser.add_argument(
        '--log-level',
        type=str,
        default='WARNING',
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
        help='Logging level (default: WARNING)'
    )

    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format='%(asctime)s %(name)s %(levelname)s: %(message)s',
    )

    try:
        config = build_config(args)
        results = run_episodes(config, args.episodes)
    except KeyboardInterrupt:
        print("\n\nInterrupted by user. Exiting...")
        sys.exit(0)
    except Exception as e:
        print(f"\nError: {e}", file=sys.stderr)
        if args.log_level == 'DEBUG':
            import traceback
            traceback.print_exc()
        sys.exit(1)

    if results:
        lengths = np.array([length for length, _ in results])
        returns = np.array([ret for _, ret in results])
        print()
        print(f"Mean length: {lengths.mean():.1f}")
        print(f"Mean return: {returns.mean():.3f} (std {returns.std():.3f})")


if __name__ == '__main__':
    main()
