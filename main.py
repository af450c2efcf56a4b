"""Simple entrypoint that walks one customer through the storefront in demo mode."""

from tailor_app.app import TailorApp
from tailor_app.config import TailorConfig


def main() -> None:
    app = TailorApp(TailorConfig.from_env())
    customer = app.identity.sign_in("customer@example.com", "demo-password").user

    profile = app.measurements.create(
        customer,
        {
            "nickname": "Everyday",
            "neck": 38,
            "chest": 98,
            "waist": 84,
            "hips": 96,
            "arm_length": 62,
            "height": 176,
            "shoulder": 45,
        },
    )

    session = app.start_customization(customer)
    product = app.catalog.list_products(category="suit")[0]
    session.select_product(product.id)
    session.select_fabric(app.catalog.list_fabrics_for(product.id)[-1].id)
    session.set_style_option("fit", "slim fit")
    session.select_measurement_profile(profile)
    print(f"{product.name}: {session.current_price()}")

    order = app.checkout(
        session,
        {
            "name": "Demo Customer",
            "email": customer.email,
            "phone": "9876543210",
            "address": "12 Tailor Street, Bengaluru",
        },
        customer,
    )
    print(f"{order.order_number} {order.status.value} total={order.total_amount}")


if __name__ == "__main__":
    main()
