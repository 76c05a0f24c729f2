from bestshot.selector import main

main()
