"""
The CLI as a module: ``python -m callflow run plans.py``.

Handy for running the plans with a specific interpreter or in a virtualenv
without the console script installed, and for debugging in the IDEs.
"""
from callflow import cli

if __name__ == '__main__':
    # Otherwise, the usage & help texts show "python -m callflow" as "__main__.py".
    cli.main(prog_name='callflow')
