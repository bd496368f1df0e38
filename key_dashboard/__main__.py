from key_dashboard.app import main

main()
