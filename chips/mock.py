# chips/mock.py
from components.peripherals import (
    DefaultPeripherals, Flash, GpioPin, Hmac, I2c, PeripheralKind, Rng, Spi, Temperature, Timer, Uart, Aes,
)
from components.platform import Chip, MemoryProtection


class MockChip(Chip):
    """
    Chip used by the tests: two UARTs, one timer, four GPIO pins, SPI, I2C,
    flash, RNG, temperature, HMAC and AES. No BLE, no OpenTitan-only
    peripherals and no systick, so the scheduler timer is virtualized.
    """
    name = "mock"

    def __init__(self, gpio_pins=4):
        catalog = {
            PeripheralKind.UART: [
                Uart(f"uart{i}", "mock::uart::Uart<'static>", f"mock::uart::Uart::new({i})")
                for i in range(2)
            ],
            PeripheralKind.TIMER: [
                Timer("timer0", "mock::timer::Timer<'static>", "mock::timer::Timer::new()", frequency=32768),
            ],
            PeripheralKind.GPIO: [
                GpioPin(f"gpio_pin{i}", "mock::gpio::GpioPin<'static>", f"mock::gpio::GpioPin::new({i})", index=i)
                for i in range(gpio_pins)
            ],
            PeripheralKind.SPI: [Spi("spi0", "mock::spi::Spi<'static>", "mock::spi::Spi::new()")],
            PeripheralKind.I2C: [I2c("i2c0", "mock::i2c::I2c<'static>", "mock::i2c::I2c::new()")],
            PeripheralKind.FLASH: [
                Flash("flash0", "mock::flash::Flash<'static>", "mock::flash::Flash::new()",
                      page_type="mock::flash::Page", page_size=512, pages_per_bank=64),
            ],
            PeripheralKind.RNG: [Rng("rng0", "mock::rng::Rng<'static>", "mock::rng::Rng::new()")],
            PeripheralKind.TEMPERATURE: [
                Temperature("temp0", "mock::temperature::Temp<'static>", "mock::temperature::Temp::new()"),
            ],
            PeripheralKind.HMAC: [Hmac("hmac0", "mock::hmac::Hmac<'static>", "mock::hmac::Hmac::new()")],
            PeripheralKind.AES: [Aes("aes0", "mock::aes::Aes<'static>", "mock::aes::Aes::new()")],
        }
        peripherals = DefaultPeripherals(
            "mock::chip::MockDefaultPeripherals<'static>",
            "mock::chip::MockDefaultPeripherals::new",
            catalog,
            chip_name=self.name,
        )
        mpu = MemoryProtection("mpu", "mock::mpu::Mpu", "mock::mpu::Mpu::new()")
        super().__init__(
            "mock::chip::Mock<'static, mock::chip::MockDefaultPeripherals<'static>>",
            peripherals,
            mpu,
            f"mock::chip::Mock::new({peripherals.identifier}, {mpu.identifier})",
        )
