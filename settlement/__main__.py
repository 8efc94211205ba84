from settlement.main import main

raise SystemExit(main())
