"""Run the deploy-to-cf server with `python -m deploy_to_cf`."""

from deploy_to_cf.main import run

if __name__ == "__main__":
    run()
