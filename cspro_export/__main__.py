"""Package entry point for ``python -m cspro_export``.

WHY: Operators run the exporter as ``python -m cspro_export -d popstan.json
-c "..."`` without installing the console script.

HOW: Delegates to the CLI's run() which exits with the status from main().
"""

if __name__ == "__main__":
    from cspro_export.cli import run
    run()
