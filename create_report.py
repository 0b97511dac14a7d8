import os
import sys

import requests

BASE_URL = os.getenv("HAZARD_API_URL", "http://127.0.0.1:8000")
EMAIL = os.getenv("HAZARD_API_EMAIL", "inspector@example.com")
PASSWORD = os.getenv("HAZARD_API_PASSWORD", "Inspector789")


def main():
    print("Authenticating as %s..." % EMAIL)
    response = requests.post(
        f"{BASE_URL}/api/auth/login",
        json={"email": EMAIL, "password": PASSWORD},
        timeout=10,
    )
    if response.status_code != 200:
        print("Login failed:", response.text)
        sys.exit(1)
    headers = {"Authorization": f"Bearer {response.json()['token']}"}

    data = {
        "reportType": "spill",
        "description": "Oil on the floor next to loading bay 3",
        "status": "open",
    }
    files = []
    for path in sys.argv[1:]:
        files.append(("images", (os.path.basename(path), open(path, "rb"))))

    print("Submitting hazard report...")
    try:
        response = requests.post(
            f"{BASE_URL}/api/hazardreports", data=data, files=files or None, headers=headers, timeout=30
        )
    finally:
        for _, (_, handle) in files:
            handle.close()
    print("Status:", response.status_code)
    print("Body:", response.text)
    if response.status_code != 201:
        sys.exit(1)

    response = requests.get(f"{BASE_URL}/api/hazardreports/user/me", headers=headers, timeout=10)
    print("Reports for this user:", response.json().get("count"))


if __name__ == "__main__":
    main()
