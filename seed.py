from dotenv import load_dotenv

load_dotenv()

from faker import Faker
import random
from decimal import Decimal

from app.core.database import Base, SessionLocal, engine
from app.models import (
    CashBalance,
    CashRegister,
    CashRegisterType,
    Counterparty,
    CounterpartyBalance,
    Currency,
    Partner,
    PartnerDividendBalance,
    Product,
    Production,
    Recipe,
    RecipeIngredient,
    RecipeOutput,
    SalaryBalance,
    Service,
    StockBalance,
    Transaction,
    User,
    Warehouse,
)
from app.models.transaction import TransactionType
from app.services.transaction_service import TransactionService

fake = Faker()

Base.metadata.create_all(bind=engine)
db = SessionLocal()

try:
    print("🔄 Clearing existing data...")
    for model in (
        Production, Recipe, Transaction,
        StockBalance, CashBalance, CounterpartyBalance, PartnerDividendBalance, SalaryBalance,
        CashRegister, Service, Product, Warehouse, Counterparty, Partner, User, Currency,
    ):
        for row in db.query(model).all():
            db.delete(row)
    db.commit()
    print("✅ Data cleared.")

    print("🔄 Creating currencies, registers and warehouses...")
    usd = Currency(code="USD", name="US Dollar", symbol="$", rate=1, is_default=True)
    eur = Currency(code="EUR", name="Euro", symbol="€", rate=Decimal("0.92"))
    db.add_all([usd, eur])
    db.flush()

    registers = [
        CashRegister(name="Main till", code="TILL-1", type=CashRegisterType.cash, currency_id=usd.id),
        CashRegister(name="Bank USD", code="BANK-USD", type=CashRegisterType.bank, currency_id=usd.id),
        CashRegister(name="Bank EUR", code="BANK-EUR", type=CashRegisterType.bank, currency_id=eur.id),
    ]
    warehouses = [
        Warehouse(name="Main warehouse", code="WH-MAIN"),
        Warehouse(name="Workshop", code="WH-SHOP"),
    ]
    db.add_all(registers + warehouses)
    db.commit()
    print(f"✅ Seeded {len(registers)} cash registers, {len(warehouses)} warehouses")

    print("🔄 Creating counterparties, partners, users, products and services...")
    counterparties = [
        Counterparty(name=fake.company(), phone="".join(filter(str.isdigit, fake.phone_number()))[:20])
        for _ in range(random.randint(8, 12))
    ]
    partners = [Partner(name=fake.name(), share_percent=Decimal("50")) for _ in range(2)]
    users = [User(name=fake.name(), email=fake.unique.email()) for _ in range(3)]
    products = [
        Product(name=fake.word().capitalize(), sku=f"SKU-{i:04d}", price=round(random.uniform(5, 100), 2))
        for i in range(1, 13)
    ]
    services = [
        Service(name="Delivery", default_price=Decimal("15.00")),
        Service(name="Installation", default_price=Decimal("40.00")),
    ]
    db.add_all(counterparties + partners + users + products + services)
    db.commit()
    print(f"✅ Seeded {len(counterparties)} counterparties, {len(products)} products")

    print("🔄 Creating a recipe...")
    recipe = Recipe(name="Assembled kit", code="KIT-1", description="Two parts make one kit")
    recipe.ingredients.append(RecipeIngredient(product_id=products[0].id, quantity=Decimal("2")))
    recipe.ingredients.append(RecipeIngredient(product_id=products[1].id, quantity=Decimal("1")))
    recipe.outputs.append(RecipeOutput(product_id=products[2].id, quantity=Decimal("1")))
    db.add(recipe)
    db.commit()
    print("✅ Seeded 1 recipe")

    print("🔄 Posting opening purchases...")
    service = TransactionService(db)
    for product in products[:6]:
        quantity = random.randint(10, 50)
        price = Decimal(str(round(random.uniform(5, 50), 2)))
        total = price * quantity
        purchase = service.create({
            "type": TransactionType.purchase,
            "user_id": users[0].id,
            "counterparty_id": random.choice(counterparties).id,
            "currency_id": usd.id,
            "total_amount": total,
            "paid_amount": total,
            "items": [{
                "product_id": product.id,
                "warehouse_id": warehouses[0].id,
                "quantity": quantity,
                "price": price,
            }],
            "cash_entries": [{
                "cash_register_id": registers[1].id,
                "currency_id": usd.id,
                "amount": -total,
            }],
        })
        service.confirm(purchase)
        print(f"💰 {purchase.number}: {quantity} x {product.name} @ {price}")

    print("✅ Seeding complete.")
except Exception as e:
    db.rollback()
    print(f"❌ Seeding failed: {e}")
    raise
finally:
    db.close()
