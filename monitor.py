import os
import sys

import requests


def check_service_health(service_url, timeout=2):
    """
    Hit the service /health endpoint once.
    Returns (True, msg) when it answers 200 with {"status": "ok"}.
    """
    try:
        response = requests.get(service_url, timeout=timeout)

        if response.status_code == 200:
            data = response.json()
            if data.get("status") == "ok":
                return True, "Healthy"

        return False, f"Status Code {response.status_code}"

    except requests.exceptions.ConnectionError:
        return False, "Unhealthy (no connection)"
    except requests.exceptions.Timeout:
        return False, "Unhealthy (timeout)"
    except ValueError:
        return False, "Unhealthy (invalid JSON)"


if __name__ == "__main__":
    # Container HEALTHCHECK entrypoint: exit 0 healthy, 1 otherwise.
    url = os.getenv("HEALTHCHECK_URL", f"http://127.0.0.1:{os.getenv('PORT', '8000')}/health")
    ok, msg = check_service_health(url)
    print(msg)
    sys.exit(0 if ok else 1)
