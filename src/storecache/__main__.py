from storecache.cli import main

raise SystemExit(main())
