from stack_foundation.cli import main

main()
