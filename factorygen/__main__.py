from factorygen.cli import main

main()
