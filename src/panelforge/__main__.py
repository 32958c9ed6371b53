from panelforge.main import main

main()
