"""Module entrypoint.

Allows:
    python -m log_incident_analyzer
"""

from __future__ import annotations

from log_incident_analyzer.server.log_server import main

if __name__ == "__main__":
    main()
