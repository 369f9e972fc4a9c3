from tweakcore.cli import main

raise SystemExit(main())
