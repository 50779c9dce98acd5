from mandelpix.cli import main

raise SystemExit(main())
