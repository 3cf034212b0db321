"""
AWS Lambda function to trigger the grant sync via the service's API endpoint.

Deploy this to Lambda and schedule with EventBridge for periodic syncs.
"""

import json
import os
import urllib.error
import urllib.request
from typing import Any, Dict


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Trigger the scheduler batch via /sync/run-all.

    Environment Variables:
        API_URL: The service base URL (e.g., https://xxx.awsapprunner.com)
        CRON_SECRET: Bearer token expected by /sync/run-all (optional)
        SYNC_TIMEOUT: Request timeout in seconds (default: 300)

    EventBridge Rule Example:
        Schedule: cron(0 6 * * ? *)  # Daily at 06:00 UTC
    """
    api_url = os.environ.get("API_URL")
    if not api_url:
        return {"statusCode": 500, "body": json.dumps({"error": "API_URL environment variable not set"})}

    timeout = int(os.environ.get("SYNC_TIMEOUT", "300"))
    endpoint = f"{api_url.rstrip('/')}/sync/run-all"

    headers = {"Content-Type": "application/json", "User-Agent": "GrantSyncTrigger/1.0"}
    cron_secret = os.environ.get("CRON_SECRET")
    if cron_secret:
        headers["Authorization"] = f"Bearer {cron_secret}"

    request = urllib.request.Request(endpoint, method="POST", headers=headers)

    try:
        print(f"Triggering grant sync at: {endpoint}")

        with urllib.request.urlopen(request, timeout=timeout) as response:
            result = json.loads(response.read().decode("utf-8"))

            print(f"Grant sync completed: {json.dumps(result, indent=2)}")

            return {"statusCode": 200, "body": json.dumps({"success": True, "sync_result": result})}

    except urllib.error.HTTPError as e:
        error_body = e.read().decode("utf-8") if e.fp else str(e)
        print(f"Sync request failed with HTTP {e.code}: {error_body}")

        return {"statusCode": e.code, "body": json.dumps({"success": False, "error": f"HTTP {e.code}: {error_body}"})}

    except urllib.error.URLError as e:
        print(f"Sync request failed: {str(e)}")

        return {"statusCode": 500, "body": json.dumps({"success": False, "error": f"Connection error: {str(e)}"})}


# For local testing
if __name__ == "__main__":
    import sys

    if len(sys.argv) > 1:
        os.environ["API_URL"] = sys.argv[1]

    result = lambda_handler({}, None)
    print(json.dumps(result, indent=2))
