from threefr_exr.cli import main


raise SystemExit(main())
