import csv
import os
import random
import time

from bookings.catalog import ServiceCatalog, ServiceDefinition
from bookings.models import BookingStatus
from dispatch.policy import DispatchPolicy
from dispatch.reassignment import DispatchExhausted
from dispatch.dispatcher import NoCandidateError
from dispatch.service import DispatchService
from helpers.registry import HelperRegistry
from helpers.roster import generate_mock_roster, load_roster

CENTER = (28.6139, 77.2090)

SERVICES = [
    ServiceDefinition("plumbing", "Plumbing", base_price=299.0),
    ServiceDefinition("electrical", "Electrical", base_price=349.0),
    ServiceDefinition("cleaning", "Home Cleaning", base_price=499.0),
    ServiceDefinition("carpentry", "Carpentry", base_price=399.0),
    ServiceDefinition("painting", "Painting", base_price=999.0),
    ServiceDefinition("gardening", "Gardening", base_price=249.0),
]


def run_simulation(roster_path=None, bookings=30, acceptance_probability=0.6):
    print("=== STARTING END-TO-END HELPER DISPATCH SIMULATION ===")

    # 1. Load Data
    if roster_path and os.path.exists(roster_path):
        helpers = load_roster(roster_path)
    else:
        tmp_path = "mock_helpers_simulation.csv"
        generate_mock_roster(count=150, center=CENTER, seed=7).to_csv(tmp_path, index=False)
        helpers = load_roster(tmp_path)
    print(f"Loaded {len(helpers)} Helpers.\n")

    # 2. Configure System from DISPATCH_* env vars / .env (short response
    #    window by default so timeouts show up)
    os.environ.setdefault("DISPATCH_RESPONSE_TIMEOUT_SECONDS", "0.2")
    policy = DispatchPolicy.from_env()
    print(f"Policy: {policy}\n")
    service = DispatchService(
        HelperRegistry(helpers),
        ServiceCatalog(SERVICES),
        policy=policy,
    )

    base_dir = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
    output_path = os.path.join(base_dir, "dispatch_results.csv")

    accepted = 0
    with open(output_path, "w", newline='') as file:
        writer = csv.writer(file)
        writer.writerow(["booking_id", "skill", "final_status", "helper_id", "offers", "rejections"])

        for _ in range(bookings):
            location = (CENTER[0] + random.uniform(-0.05, 0.05), CENTER[1] + random.uniform(-0.05, 0.05))
            skill = random.choice(SERVICES).category
            booking, result = service.create_booking("sim-user", location, skill)

            # 3. Each offered helper accepts, rejects or stays silent
            helper_id = result.helper_id if result else None
            while helper_id is not None:
                roll = random.random()
                if roll < acceptance_probability:
                    if service.accept(booking.id, helper_id):
                        accepted += 1
                        service.start(booking.id, helper_id)
                        service.complete(booking.id, helper_id)
                    break

                if roll < acceptance_probability + 0.2:
                    # stay silent and let the response window lapse
                    time.sleep(policy.response_timeout_seconds * 3)
                    current = service.store.load(booking.id)
                    helper_id = current.helper_id if current.status == BookingStatus.ASSIGNED else None
                    continue

                try:
                    helper_id = service.reject(booking.id, helper_id, "busy").helper_id
                except (NoCandidateError, DispatchExhausted):
                    helper_id = None

            final = service.store.load(booking.id)
            writer.writerow([
                final.id,
                final.skill,
                final.status.value,
                final.helper_id or "NONE",
                len(final.history),
                final.rejection_count,
            ])
            print(f"[{final.status.value.upper()}] Booking {final.id.split('-')[0]} ({skill}) -> {final.helper_id or 'no helper'}")

    service.supervisor.cancel_all()

    print("\n=== SIMULATION COMPLETE ===")
    print(f"Bookings Accepted: {accepted} / {bookings}")
    print(f"Results written to '{output_path}'.")


if __name__ == "__main__":
    run_simulation()
