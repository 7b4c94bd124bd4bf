from tgcp.app import main

raise SystemExit(main())
