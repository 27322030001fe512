from simtricks.main import main

raise SystemExit(main())
