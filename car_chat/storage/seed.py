"""Demo car catalog loaded into an empty database."""

# brand, model, year, price, body_type, engine_type, engine_volume, power_hp,
# transmission, drive, seats, fuel_consumption, description
CARS: list[tuple] = [
    ("Toyota", "RAV4", 2023, 3500000, "suv", "petrol", 2.5, 199, "automatic", "awd", 5, 8.1,
     "Популярный семейный кроссовер с надёжной репутацией"),
    ("Mazda", "CX-5", 2023, 3200000, "suv", "petrol", 2.5, 194, "automatic", "awd", 5, 7.8,
     "Стильный и управляемый кроссовер премиум-класса"),
    ("Kia", "Sportage", 2023, 2900000, "suv", "petrol", 2.0, 150, "automatic", "awd", 5, 8.4,
     "Современный кроссовер с богатой комплектацией"),
    ("Hyundai", "Tucson", 2023, 2800000, "suv", "petrol", 2.0, 150, "automatic", "awd", 5, 8.2,
     "Надёжный кроссовер корейского производства"),
    ("Toyota", "Highlander", 2022, 5200000, "suv", "hybrid", 2.5, 243, "automatic", "awd", 7, 7.2,
     "Трёхрядный гибридный внедорожник для большой семьи"),
    ("Haval", "F7", 2023, 2100000, "suv", "petrol", 1.5, 150, "robot", "awd", 5, 8.0,
     "Доступный кроссовер с полным приводом"),
    ("Toyota", "Camry", 2023, 3000000, "sedan", "petrol", 2.5, 200, "automatic", "fwd", 5, 8.5,
     "Классический бизнес-седан с высоким уровнем комфорта"),
    ("Kia", "K5", 2023, 2600000, "sedan", "petrol", 2.0, 150, "automatic", "fwd", 5, 7.9,
     "Динамичный седан с современным дизайном"),
    ("Hyundai", "Sonata", 2022, 2400000, "sedan", "petrol", 2.0, 150, "automatic", "fwd", 5, 8.0,
     "Просторный семейный седан"),
    ("Volkswagen", "Golf", 2022, 2500000, "hatchback", "petrol", 1.4, 150, "automatic", "fwd", 5,
     6.5, "Компактный городской автомобиль с отличной управляемостью"),
    ("Kia", "Ceed", 2022, 2200000, "hatchback", "petrol", 1.6, 128, "automatic", "fwd", 5, 6.9,
     "Практичный хэтчбек для города"),
    ("Kia", "Carnival", 2023, 4200000, "minivan", "diesel", 2.2, 199, "automatic", "fwd", 8, 7.5,
     "Просторный минивэн для большой семьи"),
    ("Tesla", "Model 3", 2023, 4500000, "sedan", "electric", None, 283, "automatic", "awd", 5, None,
     "Электрический седан с запасом хода 500 км"),
    ("Zeekr", "001", 2023, 4800000, "wagon", "electric", None, 544, "automatic", "awd", 5, None,
     "Мощный электрический универсал премиум-класса"),
]
