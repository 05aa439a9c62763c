"""
Mint a bearer token for an operator or a member account.

    python -m scripts.issue_token --sub admin-1 --role admin --email desk@sporti.club
"""
import argparse
from datetime import timedelta

from sporti.utils.auth import ADMIN_ROLE, MEMBER_ROLE, create_access_token

if __name__ == '__main__':
    parser = argparse.ArgumentParser(description='Issue a JWT for the bookings API')
    parser.add_argument('--sub', required=True, help='Subject (user id)')
    parser.add_argument('--role', choices=[ADMIN_ROLE, MEMBER_ROLE], default=MEMBER_ROLE)
    parser.add_argument('--email', default=None)
    parser.add_argument('--hours', type=int, default=24, help='Token lifetime in hours')
    args = parser.parse_args()

    claims = {"sub": args.sub, "role": args.role}
    if args.email:
        claims["email"] = args.email
    print(create_access_token(claims, expires_delta=timedelta(hours=args.hours)))
