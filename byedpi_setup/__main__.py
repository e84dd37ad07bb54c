from byedpi_setup.cli import main

if __name__ == "__main__":  # pragma: no cover - module entrypoint
    raise SystemExit(main())
