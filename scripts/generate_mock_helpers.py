import sys

from helpers.roster import generate_mock_roster


def main(filename="mock_helpers_100.csv", count=100):
    # Scatter helpers around central New Delhi (roughly +/- 8km)
    roster = generate_mock_roster(count=count, center=(28.6139, 77.2090))
    roster.to_csv(filename, index=False)

    online = int(roster["online"].sum())
    print(f"Successfully generated {count} mock helpers ({online} online) into '{filename}'.")
    print("\nHelpers per skill:")
    for skill, total in roster["skills"].str.split(";").explode().value_counts().items():
        print(f"  {skill}: {total}")


if __name__ == "__main__":
    main(*sys.argv[1:2])
