import logging
import os

from dispatch.pipeline import DispatchPipeline, demo_orders
from dispatch.policy import policy_from_env

COURIERS = ["Rogelio Hernandez", "Cecilia Matamala", "Rafael Bravo"]


def run_simulation():
    logging.basicConfig(level=logging.INFO, format="%(threadName)s %(message)s")
    print("=== STARTING DISPATCH SIMULATION ===")

    # 1. Configure System (DISPATCH_* env vars / .env override the defaults)
    policy = policy_from_env()
    names = COURIERS if policy.worker_count == len(COURIERS) else None
    pipeline = DispatchPipeline(policy, worker_names=names)

    # 2. Stage the morning orders before the couriers clock in
    pipeline.preload(demo_orders())
    print(f"Preloaded {pipeline.buffer.pending_count()} orders (capacity {policy.capacity}).\n")

    # 3. Run generators, workers and monitor until the shutdown protocol completes
    result = pipeline.run()

    # Save next to the script
    base_dir = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
    output_path = os.path.join(base_dir, "dispatch_results.csv")
    result.ledger.export_csv(output_path)

    print("\n=== SIMULATION COMPLETE ===")
    print(f"Orders generated during run: {len(result.generated_ids)}")
    print(f"Orders delivered: {result.delivered}")
    if result.abandoned:
        print(f"Orders abandoned mid-delivery: {[order.id for order in result.abandoned]}")
    print("\n--- Deliveries per courier ---")
    print(result.ledger.summary().to_string(index=False))
    print(f"\nResults written to '{output_path}'.")


if __name__ == "__main__":
    run_simulation()
