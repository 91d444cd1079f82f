"""
PTO - Proportional Topology Optimization
Unified Entry Point

    python main.py --problem cantilever --variant compliance
    python main.py --problem l_bracket --variant stress --allowable-stress 2.0

See `python main.py --help` for all options.
"""

from pto.cli import main


if __name__ == "__main__":
    main()
